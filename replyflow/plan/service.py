"""
Plan enforcement and user bootstrap.

All functions take a PlanDB-compatible ``db`` as their first argument so the
HTTP layer, the CLIs and the tests can share them.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from replyflow.common.utils import parse_iso, utc_now

from .limits import (
    FEATURE_KEYS,
    UNLIMITED,
    current_day_start,
    current_period_start,
    get_limits_for_plan,
    get_source_limits_for_plan,
)

logger = logging.getLogger(__name__)

SOURCE_DAILY_FEATURES = {
    "manual_sync": "syncs_daily",
    "source_validate": "source_validations_daily",
}


@dataclass
class SessionUser:
    """User identity as provided by the session layer."""

    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    image: Optional[str] = None


@dataclass
class UsageInfo:
    reveals_used: int
    drafts_used: int
    sends_used: int
    period_start: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "revealsUsed": self.reveals_used,
            "draftsUsed": self.drafts_used,
            "sendsUsed": self.sends_used,
            "periodStart": self.period_start,
        }


@dataclass
class PlanCheck:
    """Outcome of a quota check; ``ok`` False means the feature is blocked."""

    ok: bool
    error: Optional[str] = None
    feature: Optional[str] = None
    limit: Optional[int] = None
    period: str = "month"


def is_forced_pro() -> bool:
    """REPLYFLOW_FORCE_PLAN=pro outside production forces the Pro plan."""
    return (
        os.getenv("REPLYFLOW_ENV", "development") != "production"
        and os.getenv("REPLYFLOW_FORCE_PLAN") == "pro"
    )


def get_effective_plan(db, user_id: str, now: Optional[datetime] = None) -> str:
    if is_forced_pro():
        return "pro"

    row = db.get_user_plan(user_id)
    if not row:
        return "free"

    expires_at = parse_iso(row.get("plan_expires_at"))
    if expires_at is not None and expires_at < (now or utc_now()):
        return "free"

    return row.get("plan") or "free"


def get_or_create_usage(db, user_id: str, now: Optional[datetime] = None) -> UsageInfo:
    period_start = current_period_start(now)
    usage = db.get_usage(user_id, period_start)
    if not usage:
        db.insert_usage_if_missing(user_id, period_start)
        usage = db.get_usage(user_id, period_start) or {}

    return UsageInfo(
        reveals_used=usage.get("reveals_used", 0),
        drafts_used=usage.get("drafts_used", 0),
        sends_used=usage.get("sends_used", 0),
        period_start=period_start,
    )


def assert_within_plan(db, user_id: str, feature: str, cost: int = 1) -> PlanCheck:
    """
    Check a feature against the monthly quota and consume it when allowed.

    Pro users are never blocked (usage is still counted). Free users are
    blocked when ``used + cost`` would exceed the limit; the check and the
    increment are one conditional update, so concurrent requests cannot
    overshoot the quota.

    Raises:
        ValueError: If feature is unknown
    """
    if feature not in FEATURE_KEYS:
        raise ValueError(f"Unknown plan feature: {feature}")

    plan = get_effective_plan(db, user_id)
    limit = get_limits_for_plan(plan).for_feature(feature)

    if feature == "accounts":
        if plan != "pro" and cost > limit:
            return PlanCheck(ok=False, error="upgrade_required", feature=feature, limit=limit)
        return PlanCheck(ok=True)

    usage = get_or_create_usage(db, user_id)
    if plan == "pro":
        db.consume_usage(user_id, usage.period_start, feature, cost)
        return PlanCheck(ok=True)

    if db.consume_usage(user_id, usage.period_start, feature, cost, limit=limit) is None:
        logger.info(
            "Plan limit reached",
            extra={"user_id": user_id, "feature": feature, "limit": limit},
        )
        return PlanCheck(ok=False, error="upgrade_required", feature=feature, limit=limit)

    return PlanCheck(ok=True)


def assert_within_source_daily_quota(db, user_id: str, kind: str) -> PlanCheck:
    """
    Check and consume one unit of a daily source quota.

    ``kind`` is ``manual_sync`` or ``source_validate``. Counters live in
    ``source_usage_daily`` and reset at UTC midnight.

    Raises:
        ValueError: If kind is unknown
    """
    if kind not in SOURCE_DAILY_FEATURES:
        raise ValueError(f"Unknown source quota: {kind}")

    limits = get_source_limits_for_plan(get_effective_plan(db, user_id))
    limit = limits.manual_syncs_per_day if kind == "manual_sync" else limits.source_validations_per_day

    day_start = current_day_start()
    if not db.get_source_usage(user_id, day_start):
        db.insert_source_usage_if_missing(user_id, day_start)

    if limit == UNLIMITED:
        db.consume_source_usage(user_id, day_start, kind)
        return PlanCheck(ok=True)

    if db.consume_source_usage(user_id, day_start, kind, limit=limit) is None:
        logger.info("Daily source quota reached", extra={"user_id": user_id, "kind": kind, "limit": limit})
        return PlanCheck(
            ok=False,
            error="upgrade_required",
            feature=SOURCE_DAILY_FEATURES[kind],
            limit=limit,
            period="day",
        )
    return PlanCheck(ok=True)


def assert_within_source_enable_quota(db, sources_db, user_id: str, source_type: str) -> PlanCheck:
    """
    Check whether the user may enable one more source of ``source_type``.

    Nothing is consumed: the quota is the number of enabled sources the
    user owns, counted from ``repo_sources``. ATS sources also count
    against the smaller ATS allowance.
    """
    limits = get_source_limits_for_plan(get_effective_plan(db, user_id))
    counts = sources_db.count_enabled_sources(user_id=user_id)

    if limits.enabled_sources != UNLIMITED and counts["enabled_sources"] >= limits.enabled_sources:
        return PlanCheck(
            ok=False,
            error="upgrade_required",
            feature="sources_enabled",
            limit=limits.enabled_sources,
            period="total",
        )

    if (
        source_type != "github_repo"
        and limits.enabled_ats_sources != UNLIMITED
        and counts["enabled_ats_sources"] >= limits.enabled_ats_sources
    ):
        return PlanCheck(
            ok=False,
            error="upgrade_required",
            feature="ats_sources_enabled",
            limit=limits.enabled_ats_sources,
            period="total",
        )

    return PlanCheck(ok=True)


def upgrade_required_response(feature: str, limit: int, period: str = "month") -> dict[str, Any]:
    return {"error": "upgrade_required", "feature": feature, "limit": limit, "period": period}


def get_plan_info(db, user_id: str) -> dict[str, Any]:
    plan = get_effective_plan(db, user_id)
    return {
        "plan": plan,
        "limits": get_limits_for_plan(plan).to_dict(),
        "sourceLimits": get_source_limits_for_plan(plan).to_dict(),
        "usage": get_or_create_usage(db, user_id).to_dict(),
    }


def ensure_user_exists(db, session_user: SessionUser) -> str:
    """
    Make sure the session's user has a ``users`` row and a plan row.

    A user already stored under the same email with a different id is
    treated as canonical so that the unique email constraint never breaks
    sign-in.

    Returns:
        Canonical user id ("" when the session has no user id)
    """
    if not session_user or not session_user.id:
        return ""

    requested_id = session_user.id
    requested_email = session_user.email or f"{requested_id}@unknown.local"

    existing_by_id = db.get_user_by_id(requested_id)
    existing_by_email = db.get_user_by_email(requested_email)

    canonical_id = requested_id
    if existing_by_email and existing_by_email["id"] != requested_id:
        canonical_id = existing_by_email["id"]
        db.update_user(
            canonical_id,
            {
                "name": session_user.name or existing_by_email.get("name"),
                "image": session_user.image or existing_by_email.get("image"),
            },
        )
    elif not existing_by_id:
        db.insert_user(requested_id, session_user.name, requested_email, session_user.image)
        logger.info("Created user", extra={"user_id": requested_id})
    else:
        db.update_user(
            requested_id,
            {
                "name": session_user.name or existing_by_id.get("name"),
                "email": requested_email,
                "image": session_user.image or existing_by_id.get("image"),
            },
        )

    db.insert_free_plan_if_missing(canonical_id)
    return canonical_id


def get_or_create_profile(db, user_id: str) -> dict[str, Any]:
    profile = db.get_profile(user_id)
    if not profile:
        db.insert_default_profile(user_id)
        profile = db.get_profile(user_id)
    return profile
