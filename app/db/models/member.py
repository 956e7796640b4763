from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    CheckConstraint,
    Index,
    func,
)
from sqlalchemy.orm import relationship
from app.core.constants import MemberType, MemberStatus
from app.db.base import Base


class Member(Base):
    __tablename__ = "members"

    id = Column(Integer, primary_key=True, index=True)

    member_no = Column(String(32), nullable=False, unique=True)

    # -------- lifecycle / entitlement --------
    type = Column(
        String(16),
        nullable=False,
        server_default=MemberType.NORMAL.value,
    )

    status = Column(
        String(16),
        nullable=False,
        server_default=MemberStatus.ACTIVE.value,
    )

    remaining_matches = Column(Integer, nullable=False, server_default="0")

    expiry_time = Column(DateTime(timezone=True), nullable=True)
    payment_time = Column(DateTime(timezone=True), nullable=True)

    # bumped by every lifecycle write; compare-and-swap guard
    version = Column(Integer, nullable=False, server_default="1")

    # -------- profile --------
    nickname = Column(String(64), nullable=True)
    wechat = Column(String(64), nullable=True)
    phone = Column(String(32), nullable=True)
    gender = Column(String(8), nullable=True)
    birth_year = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    weight = Column(Integer, nullable=True)

    province = Column(String(32), nullable=True)
    city = Column(String(32), nullable=True)
    district = Column(String(32), nullable=True)
    target_area = Column(String(128), nullable=True)

    education = Column(String(32), nullable=True)
    occupation = Column(String(64), nullable=True)
    income = Column(String(32), nullable=True)
    marriage = Column(String(32), nullable=True)
    housing = Column(String(32), nullable=True)
    car = Column(String(32), nullable=True)
    children_plan = Column(String(32), nullable=True)
    partner_requirement = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    notes = relationship(
        "MemberNote",
        back_populates="member",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint(
            "remaining_matches >= 0",
            name="ck_members_remaining_matches_non_negative",
        ),
        Index("ix_members_type_status", "type", "status"),
    )
