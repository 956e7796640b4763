from fastapi import APIRouter, Header, Query
from typing import List, Optional

from app.core.constants import MEMBER_STATUSES, MEMBER_TYPES
from app.core.errors import NotFound
from app.schemas.common import MessageResponse
from app.schemas.lifecycle import ActionParams
from app.schemas.match import MatchCreate, MatchRecordOut
from app.schemas.member import (
    MemberActionRequest,
    MemberCounts,
    MemberCreate,
    MemberNoteOut,
    MemberOut,
    MemberUpdate,
    ReasonRequest,
    UpgradeRequest,
)
from app.services.match_service import MatchService
from app.services.member_service import MemberService


router = APIRouter()


# GET member types (for dropdowns)
@router.get("/types", response_model=MessageResponse[List[dict]])
def get_member_types():
    types_list = [{"id": k, "name": v} for k, v in MEMBER_TYPES.items()]
    return {
        "message": "Member types fetched successfully",
        "data": types_list,
    }


# GET member statuses (for dropdowns)
@router.get("/statuses", response_model=MessageResponse[List[dict]])
def get_member_statuses():
    statuses_list = [{"id": k, "name": v} for k, v in MEMBER_STATUSES.items()]
    return {
        "message": "Member statuses fetched successfully",
        "data": statuses_list,
    }


# -------------------------
# COUNT all members
# -------------------------
@router.get("/count")
def count_members():
    return {"count": MemberService.count_members()}


# -------------------------
# LIST members (search + filters + pagination)
# -------------------------
@router.get("")
def list_members(
    search: Optional[str] = None,
    status: Optional[str] = Query(None, pattern="^(ACTIVE|REVOKED)$"),
    type: Optional[str] = Query(None, pattern="^(NORMAL|ONE_TIME|ANNUAL)$"),
    gender: Optional[str] = Query(None, pattern="^(male|female)$"),
    page: int = Query(0, ge=0),
    page_size: int = Query(10, ge=1, le=1000),
):
    members, total, counts = MemberService.list_members(
        search=search,
        status=status,
        member_type=type,
        gender=gender,
        page=page,
        page_size=page_size,
    )
    return {
        "message": "Members fetched successfully",
        "data": [MemberOut.model_validate(m) for m in members],
        "total": total,
        "member_counts": MemberCounts(**counts),
    }


# -------------------------
# CREATE member
# -------------------------
@router.post("", response_model=MessageResponse[MemberOut])
def create_member(
    payload: MemberCreate,
    x_user_id: Optional[str] = Header(None),
):
    member = MemberService.create_member(payload, actor_id=x_user_id)
    return {
        "message": "Member created successfully",
        "data": member,
    }


# -------------------------
# MATCH two members
# -------------------------
@router.post("/match", response_model=MessageResponse[MatchRecordOut])
def match_members(payload: MatchCreate):
    record = MatchService.create_match(payload)
    return {
        "message": "Members matched successfully",
        "data": record,
    }


# -------------------------
# GET member by ID
# -------------------------
@router.get("/{member_id}", response_model=MessageResponse[MemberOut])
def get_member(member_id: int):
    member = MemberService.get_member(member_id)
    if not member:
        raise NotFound("Member not found")

    return {
        "message": "Member fetched successfully",
        "data": member,
    }


# -------------------------
# UPDATE member profile
# -------------------------
@router.put("/{member_id}", response_model=MessageResponse[MemberOut])
def update_member(
    member_id: int,
    payload: MemberUpdate,
):
    member = MemberService.update_member(member_id, payload)
    return {
        "message": "Member updated successfully",
        "data": member,
    }


# -------------------------
# GENERIC action (revoke / activate / upgrade / delete)
# -------------------------
@router.patch("/{member_id}", response_model=MessageResponse[MemberOut])
def apply_member_action(
    member_id: int,
    payload: MemberActionRequest,
    x_user_id: Optional[str] = Header(None),
):
    member = MemberService.apply_action(
        member_id,
        payload.action,
        ActionParams(
            reason=payload.reason,
            notes=payload.notes,
            target_type=payload.type,
            payment_time=payload.payment_time,
        ),
        actor_id=x_user_id,
    )
    if member is None:
        return {"message": "Member deleted permanently"}

    return {
        "message": "Member status updated",
        "data": member,
    }


# -------------------------
# REVOKE member
# -------------------------
@router.post("/{member_id}/revoke", response_model=MessageResponse[MemberOut])
def revoke_member(
    member_id: int,
    payload: ReasonRequest,
    x_user_id: Optional[str] = Header(None),
):
    member = MemberService.revoke_member(
        member_id, payload.reason, payload.notes, actor_id=x_user_id
    )
    return {
        "message": "Member revoked successfully",
        "data": member,
    }


# -------------------------
# ACTIVATE member
# -------------------------
@router.post("/{member_id}/activate", response_model=MessageResponse[MemberOut])
def activate_member(
    member_id: int,
    payload: ReasonRequest,
    x_user_id: Optional[str] = Header(None),
):
    member = MemberService.activate_member(
        member_id, payload.reason, payload.notes, actor_id=x_user_id
    )
    return {
        "message": "Member activated successfully",
        "data": member,
    }


# -------------------------
# UPGRADE member tier
# -------------------------
@router.post("/{member_id}/upgrade", response_model=MessageResponse[MemberOut])
def upgrade_member(
    member_id: int,
    payload: UpgradeRequest,
    x_user_id: Optional[str] = Header(None),
):
    member = MemberService.upgrade_member(
        member_id,
        payload.type,
        payment_time=payload.payment_time,
        notes=payload.notes,
        actor_id=x_user_id,
    )
    return {
        "message": f"Member upgraded to {member.type}",
        "data": member,
    }


# -------------------------
# HARD DELETE (permanent, revoked members only)
# -------------------------
@router.delete("/{member_id}", response_model=MessageResponse[None])
def delete_member(
    member_id: int,
    x_user_id: Optional[str] = Header(None),
):
    MemberService.delete_member(member_id, actor_id=x_user_id)
    return {
        "message": "Member deleted permanently",
    }


# -------------------------
# MATCH history
# -------------------------
@router.get("/{member_id}/matches")
def list_member_matches(
    member_id: int,
    page: int = Query(0, ge=0),
    page_size: int = Query(10, ge=1, le=100),
):
    records, total = MatchService.list_matches(member_id, page, page_size)
    return {
        "message": "Matches fetched successfully",
        "data": [MatchRecordOut.model_validate(r) for r in records],
        "total": total,
    }


# -------------------------
# AUDIT notes
# -------------------------
@router.get("/{member_id}/notes", response_model=MessageResponse[List[MemberNoteOut]])
def list_member_notes(member_id: int):
    notes = MemberService.list_notes(member_id)
    return {
        "message": "Notes fetched successfully",
        "data": notes,
    }
