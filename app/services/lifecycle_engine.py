"""
Lifecycle decisions for a single member.

Every function here is pure: it takes a snapshot of the member and either
returns the ``Transition`` to persist or raises a ``MembershipError``. The
services apply the transition under the member's version guard.
"""

from datetime import datetime
from typing import Optional

from app.core.config import ONE_TIME_MATCH_CREDITS
from app.core.constants import MemberAction, MemberStatus, NoteAction
from app.core.errors import InvalidInput, InvalidState
from app.core.timeutils import utcnow
from app.schemas.lifecycle import ActionParams, AuditNote, MemberState, Transition
from app.services import upgrade_engine


def _require_reason(reason: Optional[str], verb: str) -> str:
    if reason is None or not reason.strip():
        raise InvalidInput(f"A reason is required to {verb} a member")
    return reason.strip()


def revoke(
    state: MemberState,
    reason: Optional[str],
    notes: Optional[str] = None,
) -> Transition:
    if state.status != MemberStatus.ACTIVE:
        raise InvalidState("Member is already revoked")
    reason = _require_reason(reason, "revoke")

    return Transition(
        action=MemberAction.REVOKE,
        before=state,
        after=state.model_copy(update={"status": MemberStatus.REVOKED}),
        note=AuditNote(
            action=NoteAction.REVOKE,
            reason=reason,
            notes=notes,
            details={"old_status": state.status.value, "new_status": MemberStatus.REVOKED.value},
        ),
    )


def activate(
    state: MemberState,
    reason: Optional[str],
    notes: Optional[str] = None,
) -> Transition:
    if state.status != MemberStatus.REVOKED:
        raise InvalidState("Member is already active")
    reason = _require_reason(reason, "activate")

    return Transition(
        action=MemberAction.ACTIVATE,
        before=state,
        after=state.model_copy(update={"status": MemberStatus.ACTIVE}),
        note=AuditNote(
            action=NoteAction.ACTIVATE,
            reason=reason,
            notes=notes,
            details={"old_status": state.status.value, "new_status": MemberStatus.ACTIVE.value},
        ),
    )


def delete(state: MemberState) -> Transition:
    # live accounts must be revoked first
    if state.status != MemberStatus.REVOKED:
        raise InvalidState("Only revoked members can be deleted")

    return Transition(action=MemberAction.DELETE, before=state, after=None)


def parse_action(action) -> MemberAction:
    # MemberAction members or raw strings
    value = getattr(action, "value", action)
    if value is None or not str(value).strip():
        raise InvalidInput("Action is required")
    try:
        return MemberAction(str(value).strip().upper())
    except ValueError:
        raise InvalidInput(f"Unknown action: {value}")


def transition(
    state: MemberState,
    action,
    params: Optional[ActionParams] = None,
    now: Optional[datetime] = None,
    one_time_credits: int = ONE_TIME_MATCH_CREDITS,
) -> Transition:
    params = params or ActionParams()
    action = parse_action(action)

    if action == MemberAction.REVOKE:
        return revoke(state, params.reason, params.notes)
    if action == MemberAction.ACTIVATE:
        return activate(state, params.reason, params.notes)
    if action == MemberAction.DELETE:
        return delete(state)

    return upgrade_engine.upgrade(
        state,
        params.target_type,
        payment_time=params.payment_time,
        now=now or utcnow(),
        one_time_credits=one_time_credits,
        notes=params.notes,
    )
