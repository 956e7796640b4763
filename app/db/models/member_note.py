from sqlalchemy import (
    Column,
    Integer,
    BigInteger,
    String,
    Text,
    ForeignKey,
    DateTime,
    JSON,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base


class MemberNote(Base):
    __tablename__ = "member_notes"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)

    member_id = Column(
        Integer,
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
    )

    actor_id = Column(String(64), nullable=True)

    # CREATE, REVOKE, ACTIVATE, UPGRADE, MATCH
    action = Column(String(16), nullable=False)

    reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    details = Column(JSON, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    member = relationship("Member", back_populates="notes")

    __table_args__ = (
        Index("ix_member_notes_member", "member_id", "created_at"),
    )
