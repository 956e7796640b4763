"""
Tier promotion rules.

NORMAL may move to ONE_TIME or ANNUAL, ONE_TIME only to ANNUAL, and ANNUAL
has nowhere left to go. A ONE_TIME purchase adds a fixed number of credits to
whatever balance the member already holds; an ANNUAL purchase runs until one
day before the anniversary of the payment.
"""

from datetime import datetime
from typing import Optional

from app.core.config import ONE_TIME_MATCH_CREDITS
from app.core.constants import (
    MemberAction,
    MemberStatus,
    MemberType,
    NoteAction,
    UPGRADE_TARGETS,
)
from app.core.errors import InvalidInput, InvalidState, NoValidTarget
from app.core.timeutils import annual_expiry, as_utc, utcnow
from app.schemas.lifecycle import AuditNote, MemberState, Transition


def allowed_targets(member_type: MemberType) -> tuple[MemberType, ...]:
    return UPGRADE_TARGETS[MemberType(member_type)]


def parse_target(value: Optional[str]) -> MemberType:
    value = getattr(value, "value", value)
    if value is None or not str(value).strip():
        raise InvalidInput("Upgrade type is required")
    try:
        return MemberType(str(value).strip().upper())
    except ValueError:
        raise InvalidInput(f"Unknown member type: {value}")


def resolve_payment_time(
    payment_time: Optional[datetime],
    now: datetime,
) -> datetime:
    if payment_time is None:
        return now

    payment_time = as_utc(payment_time)
    if payment_time > now:
        raise InvalidInput("Payment time cannot be in the future")
    return payment_time


def upgrade(
    state: MemberState,
    target_type,
    payment_time: Optional[datetime] = None,
    now: Optional[datetime] = None,
    one_time_credits: int = ONE_TIME_MATCH_CREDITS,
    notes: Optional[str] = None,
) -> Transition:
    now = as_utc(now) if now else utcnow()

    if state.status != MemberStatus.ACTIVE:
        raise InvalidState("Only active members can be upgraded")

    target = parse_target(target_type)
    targets = allowed_targets(state.type)
    if not targets:
        raise NoValidTarget(f"{state.type.value} members have no further upgrade")
    if target not in targets:
        raise NoValidTarget(
            f"Cannot upgrade {state.type.value} member to {target.value}",
            details={"allowed": [t.value for t in targets]},
        )

    paid_at = resolve_payment_time(payment_time, now)

    if target == MemberType.ONE_TIME:
        if one_time_credits < 1:
            raise InvalidInput("One-time credit grant must be positive")
        after = state.model_copy(update={
            "type": MemberType.ONE_TIME,
            "remaining_matches": state.remaining_matches + one_time_credits,
            "expiry_time": None,
            "payment_time": paid_at,
        })
    else:
        expiry_time = annual_expiry(paid_at)
        if expiry_time <= now:
            raise InvalidInput(
                "Payment is too old: the annual membership would already be expired"
            )
        after = state.model_copy(update={
            "type": MemberType.ANNUAL,
            "expiry_time": expiry_time,
            "payment_time": paid_at,
        })

    note = AuditNote(
        action=NoteAction.UPGRADE,
        notes=notes,
        details={
            "old_type": state.type.value,
            "new_type": after.type.value,
            "payment_time": paid_at.isoformat(),
            "expiry_time": after.expiry_time.isoformat() if after.expiry_time else None,
            "remaining_matches": after.remaining_matches,
            "upgraded_at": now.isoformat(),
        },
    )

    return Transition(
        action=MemberAction.UPGRADE,
        before=state,
        after=after,
        note=note,
    )
