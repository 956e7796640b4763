from sqlalchemy import (
    Column,
    Integer,
    BigInteger,
    String,
    ForeignKey,
    DateTime,
    Index,
)
from sqlalchemy.sql import func
from app.db.base import Base


class MatchRecord(Base):
    __tablename__ = "match_records"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)

    # history survives a member's permanent deletion
    source_member_id = Column(
        Integer,
        ForeignKey("members.id", ondelete="SET NULL"),
        nullable=True,
    )

    target_member_id = Column(
        Integer,
        ForeignKey("members.id", ondelete="SET NULL"),
        nullable=True,
    )

    source_member_no = Column(String(32), nullable=False)
    target_member_no = Column(String(32), nullable=False)

    matched_by = Column(String(64), nullable=False)

    # tier the source matched under
    source_type = Column(String(16), nullable=False)

    credits_before = Column(Integer, nullable=True)
    credits_after = Column(Integer, nullable=True)

    matched_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_match_records_source", "source_member_id"),
        Index("ix_match_records_target", "target_member_id"),
    )
