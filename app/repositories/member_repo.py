from datetime import datetime
from sqlalchemy.orm import Session
from sqlalchemy import select, update, delete, func, or_

from app.core.constants import MemberStatus, MemberType
from app.db.models.member import Member
from app.schemas.member import MemberCreate, MemberUpdate


class MemberRepository:
    """Reads and guarded writes on ``members``.

    Nothing here commits; the calling service owns the transaction so a
    lifecycle write and its audit note land together or not at all.
    """

    # -------------------------
    # CREATE
    # -------------------------
    @staticmethod
    def create(db: Session, payload: MemberCreate) -> Member:
        member = Member(
            **payload.model_dump(),
            type=MemberType.NORMAL.value,
            status=MemberStatus.ACTIVE.value,
            remaining_matches=0,
            version=1,
        )
        db.add(member)
        db.flush()
        return member

    # -------------------------
    # GET BY ID
    # -------------------------
    @staticmethod
    def get_by_id(db: Session, member_id: int) -> Member | None:
        return db.get(Member, member_id, populate_existing=True)

    # -------------------------
    # GET BY MEMBER NO (case-insensitive)
    # -------------------------
    @staticmethod
    def get_by_member_no(db: Session, member_no: str) -> Member | None:
        stmt = select(Member).where(
            func.lower(Member.member_no) == member_no.lower()
        )
        return db.execute(stmt).scalars().one_or_none()

    # -------------------------
    # DUPLICATION CHECK
    # -------------------------
    @staticmethod
    def exists_with_member_no(db: Session, member_no: str) -> bool:
        stmt = select(Member.id).where(
            func.lower(Member.member_no) == member_no.lower()
        )
        return db.execute(stmt).first() is not None

    # -------------------------
    # UPDATE PROFILE
    # -------------------------
    @staticmethod
    def update_profile(
        db: Session,
        member: Member,
        payload: MemberUpdate,
    ) -> Member:
        for field, value in payload.model_dump(exclude_unset=True).items():
            setattr(member, field, value)

        db.flush()
        return member

    # -------------------------
    # SAVE lifecycle fields (compare-and-swap on version)
    # -------------------------
    @staticmethod
    def save(
        db: Session,
        member_id: int,
        expected_version: int,
        values: dict,
    ) -> bool:
        stmt = (
            update(Member)
            .where(
                Member.id == member_id,
                Member.version == expected_version,
            )
            .values(**values, version=Member.version + 1)
            .execution_options(synchronize_session=False)
        )
        return db.execute(stmt).rowcount == 1

    # -------------------------
    # CONSUME one match entitlement
    # -------------------------
    @staticmethod
    def consume_match(
        db: Session,
        member_id: int,
        member_type: MemberType,
        now: datetime,
    ) -> bool:
        """Guarded write: succeeds only if the member is still eligible.

        ONE_TIME decrements ``remaining_matches`` only while it is positive,
        so two racing matches on the last credit cannot both succeed.
        """
        stmt = update(Member).where(
            Member.id == member_id,
            Member.status == MemberStatus.ACTIVE.value,
            Member.type == member_type.value,
        )

        if member_type == MemberType.ONE_TIME:
            stmt = stmt.where(Member.remaining_matches > 0).values(
                remaining_matches=Member.remaining_matches - 1,
                version=Member.version + 1,
            )
        elif member_type == MemberType.ANNUAL:
            stmt = stmt.where(Member.expiry_time > now).values(
                version=Member.version + 1,
            )
        else:
            return False

        stmt = stmt.execution_options(synchronize_session=False)
        return db.execute(stmt).rowcount == 1

    # -------------------------
    # LIST (search + filters + pagination)
    # -------------------------
    @staticmethod
    def _filtered(
        stmt,
        search: str | None = None,
        status: str | None = None,
        member_type: str | None = None,
        gender: str | None = None,
    ):
        if search:
            search_term = f"%{search.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Member.member_no).like(search_term),
                    func.lower(Member.nickname).like(search_term),
                    func.lower(Member.wechat).like(search_term),
                    Member.phone.like(search_term),
                )
            )

        if status:
            stmt = stmt.where(Member.status == status)

        if member_type:
            stmt = stmt.where(Member.type == member_type)

        if gender:
            stmt = stmt.where(Member.gender == gender)

        return stmt

    @staticmethod
    def list(
        db: Session,
        search: str | None = None,
        status: str | None = None,
        member_type: str | None = None,
        gender: str | None = None,
        page: int = 0,
        page_size: int = 10,
    ) -> tuple[list[Member], int]:
        stmt = MemberRepository._filtered(
            select(Member), search, status, member_type, gender
        )

        # total count (before pagination)
        total = db.execute(
            select(func.count()).select_from(stmt.subquery())
        ).scalar()

        # ORDER:
        #   1) active members first
        #   2) then newest first
        stmt = (
            stmt.order_by(
                (Member.status == MemberStatus.ACTIVE.value).desc(),
                Member.created_at.desc(),
                Member.id.desc(),
            )
            .offset(page * page_size)
            .limit(page_size)
        )

        members = db.execute(stmt).scalars().all()
        return members, total

    # -------------------------
    # COUNTS
    # -------------------------
    @staticmethod
    def count_by_type(
        db: Session,
        search: str | None = None,
        status: str | None = None,
        gender: str | None = None,
    ) -> dict[str, int]:
        stmt = MemberRepository._filtered(
            select(Member.type, func.count(Member.id)),
            search,
            status,
            None,
            gender,
        ).group_by(Member.type)

        counts = {t.value: 0 for t in MemberType}
        for member_type, n in db.execute(stmt).all():
            counts[member_type] = n
        return counts

    @staticmethod
    def count(db: Session) -> int:
        return db.execute(select(func.count(Member.id))).scalar()

    # -------------------------
    # DELETE (HARD, only from REVOKED)
    # -------------------------
    @staticmethod
    def delete(db: Session, member_id: int, expected_version: int) -> bool:
        stmt = (
            delete(Member)
            .where(
                Member.id == member_id,
                Member.version == expected_version,
                Member.status == MemberStatus.REVOKED.value,
            )
            .execution_options(synchronize_session=False)
        )
        return db.execute(stmt).rowcount == 1
