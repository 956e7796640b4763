from datetime import datetime
from sqlalchemy.orm import Session
from sqlalchemy import select

from app.db.models.member_note import MemberNote
from app.schemas.lifecycle import AuditNote


class MemberNoteRepository:

    # -------- CREATE --------
    @staticmethod
    def create(
        db: Session,
        member_id: int,
        actor_id: str | None,
        note: AuditNote,
        created_at: datetime,
    ) -> MemberNote:
        row = MemberNote(
            member_id=member_id,
            actor_id=actor_id,
            action=note.action.value,
            reason=note.reason,
            notes=note.notes,
            details=note.details or None,
            created_at=created_at,
        )
        db.add(row)
        db.flush()
        return row

    # -------- LIST (newest first) --------
    @staticmethod
    def list_for_member(db: Session, member_id: int) -> list[MemberNote]:
        stmt = (
            select(MemberNote)
            .where(MemberNote.member_id == member_id)
            .order_by(MemberNote.created_at.desc(), MemberNote.id.desc())
        )
        return db.execute(stmt).scalars().all()
