"""
Eligibility rules for recording a match.

A member consumes one entitlement per match: a credit when ONE_TIME, nothing
when ANNUAL (unlimited until expiry). NORMAL members cannot match at all.
"""

from datetime import datetime
from typing import Optional

from app.core.constants import MemberStatus, MemberType
from app.core.errors import (
    Expired,
    InsufficientCredit,
    InvalidInput,
    NotEligible,
)
from app.core.timeutils import as_utc, utcnow
from app.schemas.lifecycle import MatchPlan, MemberState


def normalize_member_no(value: Optional[str]) -> str:
    if value is None or not value.strip():
        raise InvalidInput("Target member number is required")
    return value.strip()


def normalize_actor(value: Optional[str]) -> str:
    if value is None or not str(value).strip():
        raise InvalidInput("The matching administrator is required")
    return str(value).strip()


def is_expired(state: MemberState, now: datetime) -> bool:
    return state.expiry_time is None or state.expiry_time <= now


def check_eligibility(state: MemberState, now: Optional[datetime] = None) -> None:
    now = as_utc(now) if now else utcnow()

    if state.status != MemberStatus.ACTIVE:
        raise NotEligible("Revoked members cannot match")

    if state.type == MemberType.NORMAL:
        raise NotEligible("Normal members have no matching entitlement")

    if state.type == MemberType.ONE_TIME:
        if state.remaining_matches <= 0:
            raise InsufficientCredit("Member has no remaining matches")
        return

    if is_expired(state, now):
        raise Expired("Annual membership has expired")


def plan_match(
    source: MemberState,
    target: MemberState,
    actor_id: str,
    now: Optional[datetime] = None,
) -> MatchPlan:
    now = as_utc(now) if now else utcnow()

    check_eligibility(source, now)
    if source.id == target.id:
        raise InvalidInput("A member cannot be matched with themselves")

    return MatchPlan(
        source=source,
        target=target,
        actor_id=normalize_actor(actor_id),
        matched_at=now,
    )
