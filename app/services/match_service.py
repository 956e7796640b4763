from sqlalchemy.exc import OperationalError

from app.core.errors import Conflict, MembershipError, NotFound, Unavailable
from app.core.log import get_logger
from app.core.timeutils import utcnow
from app.db.models.match_record import MatchRecord
from app.db.session import SessionLocal
from app.repositories.match_repo import MatchRepository
from app.repositories.member_note_repo import MemberNoteRepository
from app.repositories.member_repo import MemberRepository
from app.schemas.lifecycle import MemberState
from app.schemas.match import MatchCreate
from app.services import match_engine

logger = get_logger("app.match_service")


class MatchService:

    # -------------------------
    # CREATE match (consumes one entitlement)
    # -------------------------
    @staticmethod
    def create_match(payload: MatchCreate) -> MatchRecord:
        db = SessionLocal()
        try:
            target_member_no = match_engine.normalize_member_no(payload.target_member_no)
            actor_id = match_engine.normalize_actor(payload.matched_by)

            source = MemberRepository.get_by_id(db, payload.member_id)
            if not source:
                raise NotFound("Member not found")

            now = utcnow()
            source_state = MemberState.model_validate(source)
            match_engine.check_eligibility(source_state, now)

            target = MemberRepository.get_by_member_no(db, target_member_no)
            if not target:
                raise NotFound(f"No member with number {target_member_no}")

            plan = match_engine.plan_match(
                source_state,
                MemberState.model_validate(target),
                actor_id,
                now,
            )

            if not MemberRepository.consume_match(db, source.id, source_state.type, now):
                # lost a race; report what the committed row says now
                db.rollback()
                fresh = MemberRepository.get_by_id(db, source.id)
                if not fresh:
                    raise NotFound("Member not found")
                match_engine.check_eligibility(MemberState.model_validate(fresh), now)
                raise Conflict("Member was modified concurrently, refresh and retry")

            db.refresh(source)
            record = MatchRepository.create(
                db, plan.record_fields(credits_after=source.remaining_matches)
            )
            MemberNoteRepository.create(db, source.id, actor_id, plan.note(), now)
            db.commit()

            logger.info(
                "match recorded id=%s source=%s target=%s type=%s remaining=%s by=%s",
                record.id,
                plan.source.member_no,
                plan.target.member_no,
                plan.source.type.value,
                source.remaining_matches,
                actor_id,
            )
            return record

        except MembershipError as e:
            logger.warning(
                "match rejected member_id=%s target=%s: %s %s",
                payload.member_id, payload.target_member_no, e.code, e.message,
            )
            raise

        except OperationalError as e:
            logger.error("match failed member_id=%s: %s", payload.member_id, e)
            raise Unavailable("Database is busy, try again") from e

        finally:
            db.close()

    # -------------------------
    # LIST matches for a member
    # -------------------------
    @staticmethod
    def list_matches(member_id: int, page: int = 0, page_size: int = 10):
        db = SessionLocal()
        try:
            if not MemberRepository.get_by_id(db, member_id):
                raise NotFound("Member not found")
            return MatchRepository.list_for_member(db, member_id, page, page_size)
        except OperationalError as e:
            logger.error("match list failed member_id=%s: %s", member_id, e)
            raise Unavailable("Database is busy, try again") from e
        finally:
            db.close()
