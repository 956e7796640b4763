from datetime import datetime
from pydantic import BaseModel, Field, validator
from typing import Optional, Dict

from app.core.timeutils import as_utc


# -------------------------
# PROFILE (shared fields)
# -------------------------
class MemberProfile(BaseModel):
    nickname: Optional[str] = Field(None, max_length=64)
    wechat: Optional[str] = Field(None, max_length=64)
    phone: Optional[str] = Field(None, max_length=32)
    gender: Optional[str] = Field(None, pattern="^(male|female)$")
    birth_year: Optional[int] = Field(None, ge=1900, le=2100)
    height: Optional[int] = Field(None, ge=50, le=260)
    weight: Optional[int] = Field(None, ge=20, le=400)

    province: Optional[str] = Field(None, max_length=32)
    city: Optional[str] = Field(None, max_length=32)
    district: Optional[str] = Field(None, max_length=32)
    target_area: Optional[str] = Field(None, max_length=128)

    education: Optional[str] = Field(None, max_length=32)
    occupation: Optional[str] = Field(None, max_length=64)
    income: Optional[str] = Field(None, max_length=32)
    marriage: Optional[str] = Field(None, max_length=32)
    housing: Optional[str] = Field(None, max_length=32)
    car: Optional[str] = Field(None, max_length=32)
    children_plan: Optional[str] = Field(None, max_length=32)
    partner_requirement: Optional[str] = None


# -------------------------
# CREATE
# -------------------------
class MemberCreate(MemberProfile):
    member_no: str = Field(..., min_length=1, max_length=32)

    @validator("member_no")
    def member_no_cannot_be_blank(cls, v: str):
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()


# -------------------------
# UPDATE (profile only)
# -------------------------
class MemberUpdate(MemberProfile):
    """Profile fields only. Lifecycle fields move through revoke,
    activate, upgrade and match."""

    class Config:
        extra = "forbid"


# -------------------------
# OUTPUT
# -------------------------
class MemberOut(MemberProfile):
    id: int
    member_no: str

    type: str
    status: str
    remaining_matches: int
    expiry_time: Optional[datetime] = None
    payment_time: Optional[datetime] = None
    version: int

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @validator("expiry_time", "payment_time", "created_at", "updated_at")
    def normalize_timestamps(cls, v: Optional[datetime]):
        return as_utc(v)

    class Config:
        from_attributes = True


class MemberCounts(BaseModel):
    NORMAL: int = 0
    ONE_TIME: int = 0
    ANNUAL: int = 0


# -------------------------
# LIFECYCLE REQUESTS
# -------------------------
class ReasonRequest(BaseModel):
    reason: str = ""
    notes: Optional[str] = None


class UpgradeRequest(BaseModel):
    type: str
    payment_time: Optional[datetime] = None
    notes: Optional[str] = None


class MemberActionRequest(BaseModel):
    action: str
    reason: Optional[str] = None
    type: Optional[str] = None
    payment_time: Optional[datetime] = None
    notes: Optional[str] = None


# -------------------------
# AUDIT NOTES
# -------------------------
class MemberNoteOut(BaseModel):
    id: int
    member_id: int
    actor_id: Optional[str]
    action: str
    reason: Optional[str]
    notes: Optional[str]
    details: Optional[Dict] = None
    created_at: datetime

    @validator("created_at")
    def normalize_created_at(cls, v: datetime):
        return as_utc(v)

    class Config:
        from_attributes = True
