from datetime import datetime, timezone

import pytest

from replyflow.plan.limits import (
    FREE_LIMITS,
    UNLIMITED,
    PlanCatalog,
    current_day_start,
    current_period_start,
    get_limits_for_plan,
    get_source_limits_for_plan,
    load_plan_catalog,
)


def test_free_and_pro_limits():
    free = get_limits_for_plan("free")
    pro = get_limits_for_plan("pro")

    assert free == FREE_LIMITS
    assert (free.reveals, free.drafts, free.sends, free.accounts, free.history_items) == (50, 30, 10, 1, 30)
    assert pro.reveals == UNLIMITED
    assert pro.history_items == UNLIMITED


def test_unknown_plan_uses_free_limits():
    assert get_limits_for_plan("enterprise") == get_limits_for_plan("free")


def test_limits_to_dict_uses_camel_case_history():
    assert FREE_LIMITS.to_dict() == {
        "reveals": 50,
        "drafts": 30,
        "sends": 10,
        "accounts": 1,
        "historyItems": 30,
    }


def test_source_limits():
    assert get_source_limits_for_plan("free").enabled_sources == 10
    assert get_source_limits_for_plan("free").enabled_ats_sources == 5
    assert get_source_limits_for_plan("pro").enabled_sources == UNLIMITED


def test_source_limits_to_dict():
    assert get_source_limits_for_plan("free").to_dict() == {
        "enabledSources": 10,
        "enabledAtsSources": 5,
        "manualSyncPerDay": 3,
        "sourceValidationsPerDay": 10,
    }
    assert get_source_limits_for_plan("pro").to_dict()["manualSyncPerDay"] == UNLIMITED


def test_partial_config_keeps_defaults():
    catalog = PlanCatalog.from_dict({"plans": {"free": {"limits": {"reveals": 5}}}})

    assert catalog.limits["free"].reveals == 5
    assert catalog.limits["free"].sends == 10
    assert catalog.limits["pro"].reveals == UNLIMITED


def test_missing_config_file_uses_defaults(tmp_path):
    catalog = load_plan_catalog(str(tmp_path / "missing.yml"))

    assert catalog == PlanCatalog.defaults()


def test_invalid_yaml_raises(tmp_path):
    config_file = tmp_path / "plans.yml"
    config_file.write_text("plans: [unclosed")

    with pytest.raises(ValueError, match="Invalid YAML"):
        load_plan_catalog(str(config_file))


def test_current_period_start_is_first_of_month():
    assert current_period_start(datetime(2026, 3, 17, 12, tzinfo=timezone.utc)) == "2026-03-01"


def test_current_day_start_is_the_utc_date():
    assert current_day_start(datetime(2026, 3, 7, 23, 59, tzinfo=timezone.utc)) == "2026-03-07"
