from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError, OperationalError

from app.core.config import ONE_TIME_MATCH_CREDITS
from app.core.constants import MemberAction, NoteAction
from app.core.errors import (
    Conflict,
    DuplicateMemberNo,
    MembershipError,
    NotFound,
    Unavailable,
)
from app.core.log import get_logger
from app.core.timeutils import utcnow
from app.db.models.member import Member
from app.db.session import SessionLocal
from app.repositories.member_note_repo import MemberNoteRepository
from app.repositories.member_repo import MemberRepository
from app.schemas.lifecycle import ActionParams, AuditNote, MemberState
from app.schemas.member import MemberCreate, MemberUpdate
from app.services import lifecycle_engine

logger = get_logger("app.member_service")


class MemberService:

    # -------------------------
    # CREATE member
    # -------------------------
    @staticmethod
    def create_member(payload: MemberCreate, actor_id: str | None = None) -> Member:
        db = SessionLocal()
        try:
            if MemberRepository.exists_with_member_no(db, payload.member_no):
                raise DuplicateMemberNo("Member number already exists")

            member = MemberRepository.create(db, payload)
            MemberNoteRepository.create(
                db,
                member.id,
                actor_id,
                AuditNote(action=NoteAction.CREATE),
                utcnow(),
            )
            db.commit()
            db.refresh(member)

            logger.info("member created id=%s member_no=%s", member.id, member.member_no)
            return member

        except IntegrityError:
            db.rollback()
            raise DuplicateMemberNo("Member number already exists")

        except OperationalError as e:
            logger.error("member create failed member_no=%s: %s", payload.member_no, e)
            raise Unavailable("Database is busy, try again") from e

        finally:
            db.close()

    # -------------------------
    # GET member by ID
    # -------------------------
    @staticmethod
    def get_member(member_id: int) -> Member | None:
        db = SessionLocal()
        try:
            return MemberRepository.get_by_id(db, member_id)
        except OperationalError as e:
            logger.error("member fetch failed id=%s: %s", member_id, e)
            raise Unavailable("Database is busy, try again") from e
        finally:
            db.close()

    # -------------------------
    # UPDATE profile
    # -------------------------
    @staticmethod
    def update_member(member_id: int, payload: MemberUpdate) -> Member:
        db = SessionLocal()
        try:
            member = MemberRepository.get_by_id(db, member_id)
            if not member:
                raise NotFound("Member not found")

            MemberRepository.update_profile(db, member, payload)
            db.commit()
            db.refresh(member)
            return member

        except OperationalError as e:
            logger.error("member update failed id=%s: %s", member_id, e)
            raise Unavailable("Database is busy, try again") from e

        finally:
            db.close()

    # -------------------------
    # LIST members (search + filters + pagination)
    # -------------------------
    @staticmethod
    def list_members(
        search: str | None = None,
        status: str | None = None,
        member_type: str | None = None,
        gender: str | None = None,
        page: int = 0,
        page_size: int = 10,
    ):
        db = SessionLocal()
        try:
            members, total = MemberRepository.list(
                db=db,
                search=search,
                status=status,
                member_type=member_type,
                gender=gender,
                page=page,
                page_size=page_size,
            )
            counts = MemberRepository.count_by_type(
                db,
                search=search,
                status=status,
                gender=gender,
            )
            return members, total, counts
        except OperationalError as e:
            logger.error("member list failed: %s", e)
            raise Unavailable("Database is busy, try again") from e
        finally:
            db.close()

    @staticmethod
    def count_members() -> int:
        db = SessionLocal()
        try:
            return MemberRepository.count(db)
        except OperationalError as e:
            logger.error("member count failed: %s", e)
            raise Unavailable("Database is busy, try again") from e
        finally:
            db.close()

    # -------------------------
    # AUDIT notes
    # -------------------------
    @staticmethod
    def list_notes(member_id: int):
        db = SessionLocal()
        try:
            if not MemberRepository.get_by_id(db, member_id):
                raise NotFound("Member not found")
            return MemberNoteRepository.list_for_member(db, member_id)
        except OperationalError as e:
            logger.error("note list failed id=%s: %s", member_id, e)
            raise Unavailable("Database is busy, try again") from e
        finally:
            db.close()

    # -------------------------
    # LIFECYCLE actions
    # -------------------------
    @staticmethod
    def apply_action(
        member_id: int,
        action,
        params: Optional[ActionParams] = None,
        actor_id: str | None = None,
    ) -> Member | None:
        """Run one lifecycle action as a single transaction.

        Returns the member as committed, or ``None`` once deleted. Any
        rejection leaves the row untouched: the session is closed without
        a commit.
        """
        db = SessionLocal()
        try:
            member = MemberRepository.get_by_id(db, member_id)
            if not member:
                raise NotFound("Member not found")

            now = utcnow()
            state = MemberState.model_validate(member)
            result = lifecycle_engine.transition(
                state,
                action,
                params,
                now=now,
                one_time_credits=ONE_TIME_MATCH_CREDITS,
            )

            if result.deletes:
                if not MemberRepository.delete(db, member_id, state.version):
                    raise Conflict("Member was modified concurrently, refresh and retry")
                db.commit()
                logger.info(
                    "member deleted id=%s member_no=%s actor=%s",
                    member_id, state.member_no, actor_id,
                )
                return None

            if not MemberRepository.save(db, member_id, state.version, result.changes()):
                raise Conflict("Member was modified concurrently, refresh and retry")
            MemberNoteRepository.create(db, member_id, actor_id, result.note, now)
            db.commit()
            db.refresh(member)

            logger.info(
                "member %s id=%s %s -> %s actor=%s",
                result.action.value.lower(),
                member_id,
                f"{state.type.value}/{state.status.value}",
                f"{member.type}/{member.status}",
                actor_id,
            )
            return member

        except MembershipError as e:
            logger.warning(
                "member %s rejected id=%s: %s %s",
                getattr(action, "value", action), member_id, e.code, e.message,
            )
            raise

        except OperationalError as e:
            logger.error("member %s failed id=%s: %s", getattr(action, "value", action), member_id, e)
            raise Unavailable("Database is busy, try again") from e

        finally:
            db.close()

    @staticmethod
    def revoke_member(
        member_id: int,
        reason: str,
        notes: str | None = None,
        actor_id: str | None = None,
    ) -> Member:
        return MemberService.apply_action(
            member_id,
            MemberAction.REVOKE,
            ActionParams(reason=reason, notes=notes),
            actor_id,
        )

    @staticmethod
    def activate_member(
        member_id: int,
        reason: str,
        notes: str | None = None,
        actor_id: str | None = None,
    ) -> Member:
        return MemberService.apply_action(
            member_id,
            MemberAction.ACTIVATE,
            ActionParams(reason=reason, notes=notes),
            actor_id,
        )

    @staticmethod
    def upgrade_member(
        member_id: int,
        target_type: str,
        payment_time: datetime | None = None,
        notes: str | None = None,
        actor_id: str | None = None,
    ) -> Member:
        return MemberService.apply_action(
            member_id,
            MemberAction.UPGRADE,
            ActionParams(target_type=target_type, payment_time=payment_time, notes=notes),
            actor_id,
        )

    # -------------------------
    # HARD DELETE (revoked members only)
    # -------------------------
    @staticmethod
    def delete_member(member_id: int, actor_id: str | None = None) -> None:
        MemberService.apply_action(member_id, MemberAction.DELETE, None, actor_id)
