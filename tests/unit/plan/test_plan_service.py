from datetime import timedelta

import pytest

from replyflow.common.utils import utc_now
from replyflow.plan.limits import current_day_start
from replyflow.plan.service import (
    SessionUser,
    assert_within_plan,
    assert_within_source_daily_quota,
    assert_within_source_enable_quota,
    ensure_user_exists,
    get_effective_plan,
    get_or_create_profile,
    get_plan_info,
    is_forced_pro,
    upgrade_required_response,
)
from tests.fakes import FakePlanDB, FakeSourcesDB


class TestEffectivePlan:
    def test_missing_plan_row_is_free(self):
        assert get_effective_plan(FakePlanDB(plan=None), "u1") == "free"

    def test_active_pro(self):
        db = FakePlanDB(plan="pro", plan_expires_at=utc_now() + timedelta(days=10))
        assert get_effective_plan(db, "u1") == "pro"

    def test_expired_pro_is_free(self):
        db = FakePlanDB(plan="pro", plan_expires_at=utc_now() - timedelta(minutes=1))
        assert get_effective_plan(db, "u1") == "free"

    def test_forced_pro_outside_production(self, monkeypatch):
        monkeypatch.setenv("REPLYFLOW_FORCE_PLAN", "pro")
        monkeypatch.setenv("REPLYFLOW_ENV", "development")

        assert is_forced_pro()
        assert get_effective_plan(FakePlanDB(plan="free"), "u1") == "pro"

    def test_force_plan_ignored_in_production(self, monkeypatch):
        monkeypatch.setenv("REPLYFLOW_FORCE_PLAN", "pro")
        monkeypatch.setenv("REPLYFLOW_ENV", "production")

        assert not is_forced_pro()
        assert get_effective_plan(FakePlanDB(plan="free"), "u1") == "free"


class TestAssertWithinPlan:
    def test_free_user_under_limit_consumes_unit(self):
        db = FakePlanDB(usage={"reveals_used": 3, "drafts_used": 0, "sends_used": 0})

        check = assert_within_plan(db, "u1", "reveals")

        assert check.ok
        assert db.increments == [("reveals", 1)]
        assert db.usage["reveals_used"] == 4

    def test_free_user_at_limit_is_blocked(self):
        db = FakePlanDB(usage={"reveals_used": 0, "drafts_used": 0, "sends_used": 10})

        check = assert_within_plan(db, "u1", "sends")

        assert not check.ok
        assert check.error == "upgrade_required"
        assert check.feature == "sends"
        assert check.limit == 10
        assert db.increments == []

    def test_cost_counts_against_limit(self):
        db = FakePlanDB(usage={"reveals_used": 0, "drafts_used": 29, "sends_used": 0})

        assert not assert_within_plan(db, "u1", "drafts", cost=2).ok
        assert assert_within_plan(db, "u1", "drafts", cost=1).ok

    def test_usage_row_created_on_first_use(self):
        db = FakePlanDB()

        assert assert_within_plan(db, "u1", "drafts").ok
        assert db.usage["drafts_used"] == 1

    def test_pro_user_is_never_blocked_but_counted(self):
        db = FakePlanDB(plan="pro", usage={"reveals_used": 0, "drafts_used": 0, "sends_used": 9999})

        assert assert_within_plan(db, "u1", "sends").ok
        assert db.increments == [("sends", 1)]

    def test_limit_is_checked_by_the_consume_step(self):
        db = FakePlanDB(usage={"reveals_used": 49, "drafts_used": 0, "sends_used": 0})
        consume_usage = db.consume_usage
        calls = []

        def recording_consume(user_id, period_start, feature, cost, limit=None):
            calls.append((feature, cost, limit))
            return consume_usage(user_id, period_start, feature, cost, limit)

        db.consume_usage = recording_consume

        results = [assert_within_plan(db, "u1", "reveals").ok for _ in range(3)]

        assert results == [True, False, False]
        assert calls == [("reveals", 1, 50)] * 3
        assert db.usage["reveals_used"] == 50

    def test_pro_consume_has_no_limit(self):
        db = FakePlanDB(plan="pro", usage={"reveals_used": 0, "drafts_used": 0, "sends_used": 0})
        consume_usage = db.consume_usage
        limits = []

        def recording_consume(user_id, period_start, feature, cost, limit=None):
            limits.append(limit)
            return consume_usage(user_id, period_start, feature, cost, limit)

        db.consume_usage = recording_consume

        assert assert_within_plan(db, "u1", "drafts").ok
        assert limits == [None]

    def test_accounts_are_not_counted(self):
        db = FakePlanDB()

        assert assert_within_plan(db, "u1", "accounts").ok
        assert db.increments == []

    def test_unknown_feature_raises(self):
        with pytest.raises(ValueError, match="Unknown plan feature"):
            assert_within_plan(FakePlanDB(), "u1", "exports")


class TestSourceDailyQuota:
    def test_first_use_creates_the_day_row(self):
        db = FakePlanDB()

        check = assert_within_source_daily_quota(db, "u1", "manual_sync")

        assert check.ok
        assert db.source_usage[("u1", current_day_start())] == {
            "manual_syncs_used": 1,
            "source_validations_used": 0,
        }

    def test_free_manual_syncs_stop_at_three(self):
        db = FakePlanDB()
        for _ in range(3):
            assert assert_within_source_daily_quota(db, "u1", "manual_sync").ok

        check = assert_within_source_daily_quota(db, "u1", "manual_sync")

        assert not check.ok
        assert (check.feature, check.limit, check.period) == ("syncs_daily", 3, "day")
        assert db.source_usage[("u1", current_day_start())]["manual_syncs_used"] == 3

    def test_validations_are_counted_separately(self):
        db = FakePlanDB()
        db.source_usage[("u1", current_day_start())] = {"manual_syncs_used": 3, "source_validations_used": 0}

        assert assert_within_source_daily_quota(db, "u1", "source_validate").ok

    def test_pro_is_never_blocked(self):
        db = FakePlanDB(plan="pro")
        db.source_usage[("u1", current_day_start())] = {"manual_syncs_used": 500, "source_validations_used": 0}

        assert assert_within_source_daily_quota(db, "u1", "manual_sync").ok
        assert db.source_usage[("u1", current_day_start())]["manual_syncs_used"] == 501

    def test_unknown_kind_raises(self):
        with pytest.raises(ValueError, match="Unknown source quota"):
            assert_within_source_daily_quota(FakePlanDB(), "u1", "exports")


class TestSourceEnableQuota:
    def _sources(self, count, source_type="github_repo", user_id="u1"):
        return [
            {"id": f"src-{n}", "user_id": user_id, "source_type": source_type, "enabled": True}
            for n in range(count)
        ]

    def test_under_limit(self):
        check = assert_within_source_enable_quota(
            FakePlanDB(), FakeSourcesDB(self._sources(9)), "u1", "github_repo"
        )

        assert check.ok

    def test_enabled_sources_cap(self):
        check = assert_within_source_enable_quota(
            FakePlanDB(), FakeSourcesDB(self._sources(10)), "u1", "github_repo"
        )

        assert (check.ok, check.feature, check.limit, check.period) == (False, "sources_enabled", 10, "total")

    def test_ats_cap_only_applies_to_ats_sources(self):
        sources_db = FakeSourcesDB(self._sources(5, source_type="lever_postings"))

        assert assert_within_source_enable_quota(FakePlanDB(), sources_db, "u1", "github_repo").ok
        check = assert_within_source_enable_quota(FakePlanDB(), sources_db, "u1", "greenhouse_board")
        assert (check.feature, check.limit) == ("ats_sources_enabled", 5)

    def test_other_users_sources_do_not_count(self):
        sources_db = FakeSourcesDB(self._sources(10, user_id="u2"))

        assert assert_within_source_enable_quota(FakePlanDB(), sources_db, "u1", "github_repo").ok

    def test_pro_has_no_cap(self):
        check = assert_within_source_enable_quota(
            FakePlanDB(plan="pro"), FakeSourcesDB(self._sources(50)), "u1", "github_repo"
        )

        assert check.ok


def test_upgrade_required_response():
    assert upgrade_required_response("reveals", 50) == {
        "error": "upgrade_required",
        "feature": "reveals",
        "limit": 50,
        "period": "month",
    }


def test_plan_info():
    db = FakePlanDB(usage={"reveals_used": 2, "drafts_used": 1, "sends_used": 0})

    info = get_plan_info(db, "u1")

    assert info["plan"] == "free"
    assert info["limits"]["historyItems"] == 30
    assert info["usage"]["revealsUsed"] == 2
    assert info["usage"]["periodStart"].endswith("-01")


class TestEnsureUserExists:
    def test_creates_user_and_free_plan(self):
        db = FakePlanDB()

        user_id = ensure_user_exists(db, SessionUser(id="u1", email="ana@example.com", name="Ana"))

        assert user_id == "u1"
        assert db.users["u1"]["email"] == "ana@example.com"
        assert db.free_plans == ["u1"]

    def test_missing_email_gets_placeholder(self):
        db = FakePlanDB()

        ensure_user_exists(db, SessionUser(id="u2"))

        assert db.users["u2"]["email"] == "u2@unknown.local"

    def test_existing_email_is_canonical(self):
        db = FakePlanDB(users=[{"id": "old", "email": "ana@example.com", "name": "Ana", "image": None}])

        user_id = ensure_user_exists(
            db, SessionUser(id="new", email="ana@example.com", image="https://img/ana.png")
        )

        assert user_id == "old"
        assert "new" not in db.users
        assert db.users["old"]["image"] == "https://img/ana.png"
        assert db.users["old"]["name"] == "Ana"
        assert db.free_plans == ["old"]

    def test_empty_session(self):
        assert ensure_user_exists(FakePlanDB(), SessionUser(id="")) == ""


def test_get_or_create_profile_inserts_default():
    db = FakePlanDB()

    profile = get_or_create_profile(db, "u1")

    assert profile["user_id"] == "u1"
    assert profile["experience_level"] == "Pleno"
    assert get_or_create_profile(db, "u1") is profile


def test_upgrade_required_response_for_daily_quota():
    assert upgrade_required_response("syncs_daily", 3, "day")["period"] == "day"
