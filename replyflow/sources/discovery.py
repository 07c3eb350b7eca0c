"""
Source discovery.

Seeds ``repo_sources`` from the catalog in `config/sources.yml`. New
sources are inserted once (by ``full_name``) and auto-enabled when their
confidence is high enough and the plan still has free source slots.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from replyflow.common.utils import clamp, generate_id, parse_iso, round_half_up, utc_now
from replyflow.plan.limits import get_source_limits_for_plan
from replyflow.plan.service import get_effective_plan

from .policy import get_source_policy
from .source_config import (
    ATS_SOURCE_TYPES,
    AtsSourceCandidate,
    GithubRepoCandidate,
    SourceCatalog,
)

logger = logging.getLogger(__name__)

ATS_KEY_PREFIXES = {
    "greenhouse_board": "greenhouse",
    "lever_postings": "lever",
    "ashby_board": "ashby",
    "workable_widget": "workable",
    "recruitee_careers": "recruitee",
}

ATS_DEFAULT_URLS = {
    "greenhouse_board": "https://boards.greenhouse.io/{key}",
    "lever_postings": "https://jobs.lever.co/{key}",
    "ashby_board": "https://jobs.ashbyhq.com/{key}",
    "workable_widget": "https://apply.workable.com/{key}",
    "recruitee_careers": "https://{key}.recruitee.com",
}

DEFAULT_ATS_REGION_TAGS = ["LATAM", "INTL_LATAM_FRIENDLY"]

INITIAL_HEALTH_BREAKDOWN = {
    "fetchReliability": 100,
    "freshness": 100,
    "parsingQuality": 100,
    "compliance": 100,
    "stability": 100,
}


@dataclass
class DiscoveryResult:
    created: int = 0
    auto_enabled: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"created": self.created, "autoEnabled": self.auto_enabled}


def score_github_candidate(repo: GithubRepoCandidate, now: Optional[datetime] = None) -> int:
    """Confidence (0..100) that a community repo is worth syncing."""
    level = (repo.activity_level or "").lower()
    score = 70
    if level == "very_active":
        score += 20
    if level == "active":
        score += 12
    if level == "moderate":
        score += 4

    if repo.type in ("general_jobs", "php_jobs"):
        score += 8

    updated = parse_iso(repo.updated_at)
    if updated is not None:
        days = ((now or utc_now()) - updated).total_seconds() / 86400
        if days <= 14:
            score += 5
        elif days > 90:
            score -= 12

    return int(clamp(score))


def normalize_confidence(value: Any, fallback: int = 80) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
        return fallback
    return int(clamp(round_half_up(value)))


def normalize_region_tags(tags: Optional[list[Any]], fallback: list[str]) -> list[str]:
    cleaned = []
    for tag in tags or []:
        text = str(tag or "").strip().upper()
        if text and text not in cleaned:
            cleaned.append(text)
    return cleaned or list(fallback)


def github_region_tags(repo: GithubRepoCandidate) -> list[str]:
    if "portugal" in (repo.category or "").lower():
        return ["PT", "LATAM", "INTL_LATAM_FRIENDLY"]
    return ["BR", "LATAM", "INTL_LATAM_FRIENDLY"]


def ats_source_url(candidate: AtsSourceCandidate) -> str:
    if candidate.url and candidate.url.strip():
        return candidate.url.strip()
    template = ATS_DEFAULT_URLS.get(candidate.source_type, "https://{key}")
    return template.format(key=candidate.external_key)


class _SlotBudget:
    """Remaining enabled/ATS source slots; None means unlimited."""

    def __init__(self, enabled: Optional[int], ats: Optional[int]):
        self.enabled = enabled
        self.ats = ats

    def can_enable(self, source_type: str) -> bool:
        if self.enabled is not None and self.enabled <= 0:
            return False
        if source_type != "github_repo" and self.ats is not None and self.ats <= 0:
            return False
        return True

    def consume(self, source_type: str) -> None:
        if self.enabled is not None:
            self.enabled -= 1
        if source_type != "github_repo" and self.ats is not None:
            self.ats -= 1


def _slot_budget(db, plan_db, user_id: Optional[str]) -> _SlotBudget:
    if not user_id or plan_db is None:
        return _SlotBudget(None, None)

    limits = get_source_limits_for_plan(get_effective_plan(plan_db, user_id))
    counts = db.count_enabled_sources(user_id=user_id)
    enabled = (
        None
        if limits.enabled_sources < 0
        else max(0, limits.enabled_sources - counts["enabled_sources"])
    )
    ats = (
        None
        if limits.enabled_ats_sources < 0
        else max(0, limits.enabled_ats_sources - counts["enabled_ats_sources"])
    )
    return _SlotBudget(enabled, ats)


def _insert_discovered_source(db, source: dict[str, Any]) -> bool:
    if db.source_exists(source["full_name"]):
        return False

    policy = get_source_policy(source["source_type"])
    db.insert_source(
        {
            **source,
            "id": generate_id("src"),
            "attribution_label": policy.attribution_label,
            "attribution_url": policy.attribution_url,
            "terms_url": policy.terms_url,
            "auto_discovered": True,
            "health_score": 100,
            "health_status": "healthy",
            "health_breakdown": dict(INITIAL_HEALTH_BREAKDOWN),
            "sync_interval_minutes": source.get("sync_interval_minutes") or 30,
            "next_sync_at": utc_now(),
            "last_scraped_at": None,
            "total_jobs_fetched": 0,
        }
    )
    return True


def run_source_discovery(
    db,
    catalog: SourceCatalog,
    user_id: Optional[str] = None,
    plan_db=None,
    min_auto_enable_confidence: Optional[int] = None,
) -> DiscoveryResult:
    """
    Insert catalog sources that are not stored yet.

    Args:
        db: SourcesDB instance
        catalog: Loaded source catalog
        user_id: When given, auto-enabling respects this user's plan source slots
        plan_db: PlanDB used to resolve the user's plan
        min_auto_enable_confidence: GitHub confidence needed to auto-enable
            (defaults to the catalog's sync setting)

    Returns:
        DiscoveryResult with created and auto-enabled counts
    """
    threshold = (
        catalog.sync.min_auto_enable_confidence
        if min_auto_enable_confidence is None
        else min_auto_enable_confidence
    )
    budget = _slot_budget(db, plan_db, user_id)
    interval = catalog.sync.default_interval_minutes
    result = DiscoveryResult()

    def record(created: bool, enabled: bool, source_type: str) -> None:
        if not created:
            return
        result.created += 1
        if enabled:
            result.auto_enabled += 1
            budget.consume(source_type)

    for candidate in catalog.discoverable_github_repos():
        full_name = (candidate.full_name or "").strip()
        url = (candidate.url or "").strip()
        if not full_name or not url:
            continue

        owner, _, repo = full_name.partition("/")
        confidence = score_github_candidate(candidate)
        enabled = confidence >= threshold and budget.can_enable("github_repo")

        created = _insert_discovered_source(
            db,
            {
                "user_id": user_id,
                "source_type": "github_repo",
                "display_name": full_name,
                "owner": candidate.owner or owner or "unknown",
                "repo": candidate.repo or repo or "unknown",
                "external_key": full_name,
                "full_name": full_name,
                "url": url,
                "category": candidate.category or candidate.type or "general",
                "technology": candidate.technology,
                "region_tags": github_region_tags(candidate),
                "discovery_confidence": confidence,
                "enabled": enabled,
                "sync_interval_minutes": interval,
            },
        )
        record(created, enabled, "github_repo")

    for candidate in catalog.ats_sources:
        external_key = candidate.external_key.strip()
        if not external_key or candidate.source_type not in ATS_SOURCE_TYPES:
            continue

        enabled = candidate.enabled_by_default and budget.can_enable(candidate.source_type)
        full_name = f"{ATS_KEY_PREFIXES[candidate.source_type]}/{external_key}"

        created = _insert_discovered_source(
            db,
            {
                "user_id": user_id,
                "source_type": candidate.source_type,
                "display_name": (candidate.display_name or "").strip() or full_name,
                "owner": candidate.source_type,
                "repo": external_key,
                "external_key": external_key,
                "full_name": full_name,
                "url": ats_source_url(candidate),
                "category": (candidate.category or "").strip() or "ats",
                "technology": None,
                "region_tags": normalize_region_tags(candidate.region_tags, DEFAULT_ATS_REGION_TAGS),
                "discovery_confidence": normalize_confidence(candidate.confidence, 80),
                "enabled": enabled,
                "sync_interval_minutes": interval,
            },
        )
        record(created, enabled, candidate.source_type)

    logger.info(
        "Source discovery finished",
        extra={"created": result.created, "auto_enabled": result.auto_enabled, "user_id": user_id},
    )
    return result
