from datetime import datetime
from pydantic import BaseModel, Field, validator
from typing import Optional

from app.core.timeutils import as_utc


# -------------------------
# CREATE
# -------------------------
class MatchCreate(BaseModel):
    member_id: int
    target_member_no: str = Field("", max_length=32)
    matched_by: str = Field("", max_length=64)


# -------------------------
# OUTPUT
# -------------------------
class MatchRecordOut(BaseModel):
    id: int
    source_member_id: Optional[int]
    target_member_id: Optional[int]
    source_member_no: str
    target_member_no: str
    matched_by: str
    source_type: str
    credits_before: Optional[int] = None
    credits_after: Optional[int] = None
    matched_at: datetime

    @validator("matched_at")
    def normalize_matched_at(cls, v: datetime):
        return as_utc(v)

    class Config:
        from_attributes = True
