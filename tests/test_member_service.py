"""
Service tests against a real (SQLite) database.
"""

import threading
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.core.constants import MemberStatus, MemberType
from app.core.errors import (
    Conflict,
    DuplicateMemberNo,
    Expired,
    InsufficientCredit,
    InvalidInput,
    InvalidState,
    NoValidTarget,
    NotEligible,
    NotFound,
    Unavailable,
)
from app.core.timeutils import annual_expiry_date, as_utc, utcnow
from app.db.session import SessionLocal
from app.repositories.member_repo import MemberRepository
from app.schemas.match import MatchCreate
from app.schemas.member import MemberCreate, MemberUpdate
from app.services import lifecycle_engine
from app.services.match_service import MatchService
from app.services.member_service import MemberService


def match(source, target_no, actor="admin-1"):
    return MatchService.create_match(
        MatchCreate(member_id=source.id, target_member_no=target_no, matched_by=actor)
    )


class TestCreateAndEdit:

    def test_new_member_defaults(self, make_member):
        member = make_member("A100")

        assert member.type == MemberType.NORMAL.value
        assert member.status == MemberStatus.ACTIVE.value
        assert member.remaining_matches == 0
        assert member.expiry_time is None
        assert member.version == 1

    def test_member_no_is_unique_ignoring_case(self, make_member):
        make_member("A100")
        with pytest.raises(DuplicateMemberNo):
            MemberService.create_member(MemberCreate(member_no="a100"))

    def test_profile_update_leaves_lifecycle_alone(self, make_member):
        member = make_member(type="ONE_TIME", remaining_matches=2)

        updated = MemberService.update_member(member.id, MemberUpdate(city="Hangzhou"))

        assert updated.city == "Hangzhou"
        assert updated.type == "ONE_TIME"
        assert updated.remaining_matches == 2

    def test_update_missing_member(self):
        with pytest.raises(NotFound):
            MemberService.update_member(999, MemberUpdate(city="x"))


class TestRevokeActivateDelete:

    def test_revoke_then_activate_round_trip(self, make_member):
        member = make_member(type="ONE_TIME", remaining_matches=3)

        revoked = MemberService.revoke_member(member.id, "suspicious", actor_id="admin-1")
        assert revoked.status == "REVOKED"

        active = MemberService.activate_member(member.id, "verified", actor_id="admin-1")
        assert active.status == "ACTIVE"
        assert active.type == member.type
        assert active.remaining_matches == member.remaining_matches
        assert active.expiry_time == member.expiry_time
        assert active.member_no == member.member_no
        assert active.version == member.version + 2

        notes = MemberService.list_notes(member.id)
        assert [n.action for n in notes] == ["ACTIVATE", "REVOKE", "CREATE"]
        assert notes[1].reason == "suspicious"
        assert notes[1].actor_id == "admin-1"

    def test_rejected_revoke_changes_nothing(self, make_member):
        member = make_member()

        with pytest.raises(InvalidInput):
            MemberService.revoke_member(member.id, "  ")

        fresh = MemberService.get_member(member.id)
        assert fresh.status == "ACTIVE"
        assert fresh.version == member.version
        assert len(MemberService.list_notes(member.id)) == 1

    def test_double_revoke(self, make_member):
        member = make_member()
        MemberService.revoke_member(member.id, "first")
        with pytest.raises(InvalidState):
            MemberService.revoke_member(member.id, "second")

    def test_delete_active_member_is_rejected(self, make_member):
        member = make_member()

        with pytest.raises(InvalidState):
            MemberService.delete_member(member.id)

        assert MemberService.get_member(member.id) is not None

    def test_delete_revoked_member(self, make_member):
        member = make_member(type="ANNUAL", expiry_time=utcnow() + timedelta(days=30))
        other = make_member()
        match(member, other.member_no)

        MemberService.revoke_member(member.id, "closing account")
        MemberService.delete_member(member.id)

        assert MemberService.get_member(member.id) is None
        # history survives, detached from the removed member
        records, total = MatchService.list_matches(other.id)
        assert total == 1
        assert records[0].source_member_id is None
        assert records[0].source_member_no == member.member_no

    def test_actions_on_missing_member(self):
        with pytest.raises(NotFound):
            MemberService.revoke_member(404, "gone")
        with pytest.raises(NotFound):
            MemberService.delete_member(404)


class TestUpgrade:

    def test_normal_to_annual(self, make_member):
        member = make_member()
        paid = utcnow() - timedelta(days=10)

        upgraded = MemberService.upgrade_member(member.id, "ANNUAL", payment_time=paid)

        assert upgraded.type == "ANNUAL"
        assert as_utc(upgraded.expiry_time).date() == annual_expiry_date(paid.date())
        assert as_utc(upgraded.payment_time) == paid

    def test_normal_to_one_time_to_annual(self, make_member):
        member = make_member()

        one_time = MemberService.upgrade_member(member.id, "ONE_TIME")
        assert one_time.type == "ONE_TIME"
        assert one_time.remaining_matches == 1
        assert one_time.expiry_time is None

        annual = MemberService.upgrade_member(member.id, "ANNUAL")
        assert annual.type == "ANNUAL"
        assert annual.expiry_time is not None

        notes = MemberService.list_notes(member.id)
        assert notes[0].details["old_type"] == "ONE_TIME"
        assert notes[0].details["new_type"] == "ANNUAL"

    def test_no_repurchase_of_one_time(self, make_member):
        member = make_member(type="ONE_TIME", remaining_matches=1)
        with pytest.raises(NoValidTarget):
            MemberService.upgrade_member(member.id, "ONE_TIME")
        assert MemberService.get_member(member.id).remaining_matches == 1

    def test_future_payment(self, make_member):
        member = make_member()
        with pytest.raises(InvalidInput):
            MemberService.upgrade_member(
                member.id, "ANNUAL", payment_time=utcnow() + timedelta(days=2)
            )
        assert MemberService.get_member(member.id).type == "NORMAL"


class TestMatch:

    def test_one_time_consumes_credit(self, make_member):
        source = make_member(type="ONE_TIME", remaining_matches=1)
        target = make_member()

        record = match(source, target.member_no.lower())

        assert record.id is not None
        assert record.target_member_id == target.id
        assert record.credits_before == 1
        assert record.credits_after == 0
        assert MemberService.get_member(source.id).remaining_matches == 0

        with pytest.raises(InsufficientCredit):
            match(source, target.member_no)
        assert MemberService.get_member(source.id).remaining_matches == 0

    def test_unknown_target_leaves_credits(self, make_member):
        source = make_member(type="ONE_TIME", remaining_matches=2)

        with pytest.raises(NotFound):
            match(source, "NOPE-1")

        assert MemberService.get_member(source.id).remaining_matches == 2

    def test_self_match(self, make_member):
        source = make_member(type="ONE_TIME", remaining_matches=2)

        with pytest.raises(InvalidInput):
            match(source, source.member_no)

        fresh = MemberService.get_member(source.id)
        assert fresh.remaining_matches == 2
        assert fresh.version == source.version

    def test_normal_member_not_eligible(self, make_member):
        source = make_member(remaining_matches=5)
        target = make_member()

        with pytest.raises(NotEligible):
            match(source, target.member_no)

    def test_revoked_member_not_eligible(self, make_member):
        source = make_member(type="ONE_TIME", remaining_matches=1, status="REVOKED")
        target = make_member()

        with pytest.raises(NotEligible):
            match(source, target.member_no)

    def test_annual_is_unlimited(self, make_member):
        source = make_member(type="ANNUAL", expiry_time=utcnow() + timedelta(days=90))
        target = make_member()

        for _ in range(3):
            match(source, target.member_no)

        records, total = MatchService.list_matches(source.id)
        assert total == 3
        assert all(r.credits_before is None for r in records)
        assert MemberService.get_member(source.id).version == source.version + 3

    def test_expired_annual(self, make_member):
        source = make_member(type="ANNUAL", expiry_time=utcnow() - timedelta(days=1))
        target = make_member()

        with pytest.raises(Expired):
            match(source, target.member_no)

    def test_missing_actor(self, make_member):
        source = make_member(type="ONE_TIME", remaining_matches=1)
        target = make_member()

        with pytest.raises(InvalidInput):
            match(source, target.member_no, actor="")

    def test_concurrent_matches_spend_last_credit_once(self, make_member):
        source = make_member(type="ONE_TIME", remaining_matches=1)
        targets = [make_member(), make_member()]
        barrier = threading.Barrier(2)
        outcomes = []

        def worker(target):
            barrier.wait()
            try:
                outcomes.append(match(source, target.member_no))
            except InsufficientCredit as e:
                outcomes.append(e)

        threads = [threading.Thread(target=worker, args=(t,)) for t in targets]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        successes = [o for o in outcomes if not isinstance(o, Exception)]
        failures = [o for o in outcomes if isinstance(o, InsufficientCredit)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert MemberService.get_member(source.id).remaining_matches == 0


class TestRepositoryGuards:

    def test_save_with_stale_version_is_refused(self, make_member):
        member = make_member()
        db = SessionLocal()
        try:
            assert MemberRepository.save(db, member.id, member.version, {"status": "REVOKED"})
            assert not MemberRepository.save(db, member.id, member.version, {"status": "ACTIVE"})
            db.commit()
        finally:
            db.close()

        assert MemberService.get_member(member.id).status == "REVOKED"

    def test_consume_never_goes_negative(self, make_member):
        member = make_member(type="ONE_TIME", remaining_matches=0)
        db = SessionLocal()
        try:
            assert not MemberRepository.consume_match(
                db, member.id, MemberType.ONE_TIME, utcnow()
            )
            db.commit()
        finally:
            db.close()

        assert MemberService.get_member(member.id).remaining_matches == 0

    def test_delete_requires_revoked_row(self, make_member):
        member = make_member()
        db = SessionLocal()
        try:
            assert not MemberRepository.delete(db, member.id, member.version)
            db.commit()
        finally:
            db.close()

        assert MemberService.get_member(member.id) is not None


class TestListing:

    def test_filters_and_counts(self, make_member):
        make_member("N1")
        make_member("O1", type="ONE_TIME", remaining_matches=1)
        make_member("O2", type="ONE_TIME", remaining_matches=1, status="REVOKED")
        make_member("Y1", type="ANNUAL", expiry_time=utcnow() + timedelta(days=10))

        members, total, counts = MemberService.list_members(member_type="ONE_TIME")
        assert total == 2
        assert {m.member_no for m in members} == {"O1", "O2"}
        # active first
        assert members[0].member_no == "O1"
        assert counts == {"NORMAL": 1, "ONE_TIME": 2, "ANNUAL": 1}

        members, total, counts = MemberService.list_members(status="ACTIVE")
        assert total == 3
        assert counts["ONE_TIME"] == 1

        members, total, _ = MemberService.list_members(search="y1")
        assert [m.member_no for m in members] == ["Y1"]

        assert MemberService.count_members() == 4

    def test_pagination(self, make_member):
        for _ in range(5):
            make_member()

        members, total, _ = MemberService.list_members(page=1, page_size=2)
        assert total == 5
        assert len(members) == 2


def database_locked(*args, **kwargs):
    raise OperationalError("UPDATE members", {}, Exception("database is locked"))


class TestConcurrentChanges:

    @pytest.fixture
    def bump_version_after_decision(self, monkeypatch, force_fields):
        """Another writer commits between our read and our write."""
        decide = lifecycle_engine.transition

        def decide_then_bump(state, *args, **kwargs):
            result = decide(state, *args, **kwargs)
            force_fields(state.id, version=state.version + 1)
            return result

        monkeypatch.setattr(lifecycle_engine, "transition", decide_then_bump)

    def test_revoke_on_stale_version(self, make_member, bump_version_after_decision):
        member = make_member()

        with pytest.raises(Conflict):
            MemberService.revoke_member(member.id, "spam")

        fresh = MemberService.get_member(member.id)
        assert fresh.status == "ACTIVE"
        assert fresh.version == member.version + 1
        assert len(MemberService.list_notes(member.id)) == 1

    def test_activate_on_stale_version(self, make_member, bump_version_after_decision):
        member = make_member(status="REVOKED")

        with pytest.raises(Conflict):
            MemberService.activate_member(member.id, "appeal")

        assert MemberService.get_member(member.id).status == "REVOKED"

    def test_upgrade_on_stale_version(self, make_member, bump_version_after_decision):
        member = make_member()

        with pytest.raises(Conflict):
            MemberService.upgrade_member(member.id, "ONE_TIME")

        fresh = MemberService.get_member(member.id)
        assert fresh.type == "NORMAL"
        assert fresh.remaining_matches == 0

    def test_delete_on_stale_version(self, make_member, bump_version_after_decision):
        member = make_member(status="REVOKED")

        with pytest.raises(Conflict):
            MemberService.delete_member(member.id)

        assert MemberService.get_member(member.id) is not None

    def test_lost_match_race_while_still_eligible(self, make_member, monkeypatch):
        source = make_member(type="ONE_TIME", remaining_matches=2)
        target = make_member()
        monkeypatch.setattr(
            MemberRepository, "consume_match", staticmethod(lambda *args, **kwargs: False)
        )

        with pytest.raises(Conflict):
            match(source, target.member_no)

        monkeypatch.undo()
        assert MemberService.get_member(source.id).remaining_matches == 2
        _, total = MatchService.list_matches(source.id)
        assert total == 0


class TestDatabaseUnavailable:

    def test_lifecycle_write(self, make_member, monkeypatch):
        member = make_member()
        monkeypatch.setattr(MemberRepository, "save", staticmethod(database_locked))

        with pytest.raises(Unavailable):
            MemberService.revoke_member(member.id, "spam")

        monkeypatch.undo()
        assert MemberService.get_member(member.id).status == "ACTIVE"

    def test_match(self, make_member, monkeypatch):
        source = make_member(type="ONE_TIME", remaining_matches=1)
        target = make_member()
        monkeypatch.setattr(MemberRepository, "consume_match", staticmethod(database_locked))

        with pytest.raises(Unavailable):
            match(source, target.member_no)

    def test_reads_and_profile_writes(self, make_member, monkeypatch):
        member = make_member()
        monkeypatch.setattr(MemberRepository, "get_by_id", staticmethod(database_locked))
        monkeypatch.setattr(MemberRepository, "list", staticmethod(database_locked))
        monkeypatch.setattr(MemberRepository, "count", staticmethod(database_locked))
        monkeypatch.setattr(
            MemberRepository, "exists_with_member_no", staticmethod(database_locked)
        )

        with pytest.raises(Unavailable):
            MemberService.get_member(member.id)
        with pytest.raises(Unavailable):
            MemberService.update_member(member.id, MemberUpdate(city="x"))
        with pytest.raises(Unavailable):
            MemberService.list_members()
        with pytest.raises(Unavailable):
            MemberService.count_members()
        with pytest.raises(Unavailable):
            MemberService.list_notes(member.id)
        with pytest.raises(Unavailable):
            MatchService.list_matches(member.id)
        with pytest.raises(Unavailable):
            MemberService.create_member(MemberCreate(member_no="Z900"))
