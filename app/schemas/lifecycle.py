from datetime import datetime
from pydantic import BaseModel, validator
from typing import Any, Dict, Optional

from app.core.constants import MemberAction, MemberStatus, MemberType, NoteAction
from app.core.timeutils import as_utc

# fields the lifecycle engines are allowed to write
LIFECYCLE_FIELDS = (
    "type",
    "status",
    "remaining_matches",
    "expiry_time",
    "payment_time",
)


# -------------------------
# SNAPSHOT of a member's entitlement
# -------------------------
class MemberState(BaseModel):
    id: int
    member_no: str
    type: MemberType
    status: MemberStatus
    remaining_matches: int = 0
    expiry_time: Optional[datetime] = None
    payment_time: Optional[datetime] = None
    version: int = 1

    @validator("expiry_time", "payment_time")
    def normalize_timestamps(cls, v: Optional[datetime]):
        return as_utc(v)

    class Config:
        from_attributes = True
        frozen = True


class ActionParams(BaseModel):
    reason: Optional[str] = None
    notes: Optional[str] = None
    target_type: Optional[str] = None
    payment_time: Optional[datetime] = None


class AuditNote(BaseModel):
    action: NoteAction
    reason: Optional[str] = None
    notes: Optional[str] = None
    details: Dict[str, Any] = {}


# -------------------------
# RESULT of a lifecycle decision
# -------------------------
class Transition(BaseModel):
    action: MemberAction
    before: MemberState
    # None means the record is removed
    after: Optional[MemberState] = None
    note: Optional[AuditNote] = None

    @property
    def deletes(self) -> bool:
        return self.after is None

    def changes(self) -> Dict[str, Any]:
        if self.after is None:
            return {}

        changed = {}
        for field in LIFECYCLE_FIELDS:
            old = getattr(self.before, field)
            new = getattr(self.after, field)
            if old != new:
                changed[field] = new.value if hasattr(new, "value") else new
        return changed


# -------------------------
# PLAN for consuming one match entitlement
# -------------------------
class MatchPlan(BaseModel):
    source: MemberState
    target: MemberState
    actor_id: str
    matched_at: datetime

    @property
    def consumes_credit(self) -> bool:
        return self.source.type == MemberType.ONE_TIME

    def record_fields(self, credits_after: Optional[int]) -> Dict[str, Any]:
        fields = {
            "source_member_id": self.source.id,
            "target_member_id": self.target.id,
            "source_member_no": self.source.member_no,
            "target_member_no": self.target.member_no,
            "matched_by": self.actor_id,
            "source_type": self.source.type.value,
            "matched_at": self.matched_at,
            "credits_before": None,
            "credits_after": None,
        }
        if self.consumes_credit and credits_after is not None:
            fields["credits_before"] = credits_after + 1
            fields["credits_after"] = credits_after
        return fields

    def note(self) -> AuditNote:
        return AuditNote(
            action=NoteAction.MATCH,
            details={
                "target_member_id": self.target.id,
                "target_member_no": self.target.member_no,
                "source_type": self.source.type.value,
                "consumed_credit": self.consumes_credit,
            },
        )
