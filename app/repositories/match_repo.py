from sqlalchemy.orm import Session
from sqlalchemy import select, func, or_

from app.db.models.match_record import MatchRecord


class MatchRepository:

    # -------- CREATE --------
    @staticmethod
    def create(db: Session, fields: dict) -> MatchRecord:
        record = MatchRecord(**fields)
        db.add(record)
        db.flush()
        return record

    # -------- LIST for one member (either side) --------
    @staticmethod
    def list_for_member(
        db: Session,
        member_id: int,
        page: int = 0,
        page_size: int = 10,
    ) -> tuple[list[MatchRecord], int]:
        stmt = select(MatchRecord).where(
            or_(
                MatchRecord.source_member_id == member_id,
                MatchRecord.target_member_id == member_id,
            )
        )

        total = db.execute(
            select(func.count()).select_from(stmt.subquery())
        ).scalar()

        stmt = (
            stmt.order_by(MatchRecord.matched_at.desc(), MatchRecord.id.desc())
            .offset(page * page_size)
            .limit(page_size)
        )
        return db.execute(stmt).scalars().all(), total
