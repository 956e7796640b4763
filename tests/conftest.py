"""
Shared fixtures: every test gets a fresh SQLite file database.
"""

import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="matchmaker-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["ONE_TIME_MATCH_CREDITS"] = "1"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import update

from app.db import models  # noqa: F401
from app.db.base import Base
from app.db.models.member import Member
from app.db.session import SessionLocal, engine
from app.main import app
from app.schemas.member import MemberCreate
from app.services.member_service import MemberService


@pytest.fixture(autouse=True)
def database():
    """Recreate all tables around each test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


def set_member_fields(member_id: int, **values) -> None:
    """Force lifecycle fields directly, bypassing the engines."""
    db = SessionLocal()
    try:
        db.execute(update(Member).where(Member.id == member_id).values(**values))
        db.commit()
    finally:
        db.close()


@pytest.fixture
def make_member():
    """Create a member, optionally forcing its lifecycle fields."""
    counter = {"n": 0}

    def _make(member_no: str | None = None, **lifecycle):
        counter["n"] += 1
        member = MemberService.create_member(
            MemberCreate(
                member_no=member_no or f"M{counter['n']:04d}",
                nickname=f"member-{counter['n']}",
                gender="female" if counter["n"] % 2 else "male",
            )
        )
        if lifecycle:
            set_member_fields(member.id, **lifecycle)
            member = MemberService.get_member(member.id)
        return member

    return _make


@pytest.fixture
def force_fields():
    return set_member_fields
