"""
User-facing source management.

Listing, adding and configuring sources and test-fetching one on demand.
Sources live in ``repo_sources`` keyed by a unique ``full_name``; a user
may only change the sources they added, while shared sources (``user_id``
NULL) stay visible to everyone.
"""

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from replyflow.common.utils import generate_id, round_half_up, to_iso, utc_now
from replyflow.outreach.exceptions import UpgradeRequiredError
from replyflow.plan.service import assert_within_source_daily_quota, assert_within_source_enable_quota

from .base import SOURCE_TYPES, SourceConnector, SourceFetchError, SourceRecord
from .connectors import get_source_connector
from .discovery import ATS_DEFAULT_URLS, ATS_KEY_PREFIXES, INITIAL_HEALTH_BREAKDOWN
from .health import compute_source_health
from .policy import get_source_policy

logger = logging.getLogger(__name__)

DEFAULT_REGION_TAGS = ["BR", "LATAM"]
MIN_SYNC_INTERVAL = 5
MAX_SYNC_INTERVAL = 1440
SAMPLE_JOBS = 3


class SourceRequestError(Exception):
    status_code = 400


class SourceNotFoundError(SourceRequestError):
    status_code = 404


class DuplicateSourceError(SourceRequestError):
    status_code = 409


class SourceValidationError(SourceRequestError):
    """The provider could not be fetched while validating."""

    status_code = 502


@dataclass
class SourceInput:
    source_type: str
    display_name: str
    owner: str
    repo: str
    external_key: str
    full_name: str
    url: str
    category: str
    technology: Optional[str]
    enabled: bool
    region_tags: list[str] = field(default_factory=list)
    discovery_confidence: float = 100
    auto_discovered: bool = False


def _github_parts(full_name: str) -> Optional[tuple[str, str]]:
    parts = [part.strip() for part in full_name.split("/") if part.strip()]
    if len(parts) != 2:
        return None
    return parts[0], parts[1]


def normalize_source_input(body: Mapping[str, Any]) -> SourceInput:
    """
    Turn a create request into a storable source.

    GitHub sources take ``fullName`` (or ``owner`` and ``repo``); ATS
    sources take the board's ``externalKey``.

    Raises:
        SourceRequestError: If the type is unknown or the identifying fields are missing
    """
    source_type = str(body.get("sourceType") or "github_repo")
    if source_type not in SOURCE_TYPES:
        raise SourceRequestError(f"Unsupported source type: {source_type}")

    display_name = str(body["displayName"]) if body.get("displayName") else None
    category = str(body.get("category") or ("community" if source_type == "github_repo" else "ats"))
    technology = str(body["technology"]) if body.get("technology") else None
    enabled = bool(body["enabled"]) if body.get("enabled") is not None else True
    tags = body.get("regionTags")
    region_tags = [str(tag) for tag in tags] if isinstance(tags, list) else list(DEFAULT_REGION_TAGS)

    confidence = body.get("discoveryConfidence")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)) or not math.isfinite(confidence):
        confidence = 100

    if source_type == "github_repo":
        name_input = (
            str(body["fullName"])
            if body.get("fullName")
            else f"{body.get('owner') or ''}/{body.get('repo') or ''}"
        )
        parts = _github_parts(name_input)
        if parts is None:
            raise SourceRequestError("GitHub source requires fullName in owner/repo format")
        owner, repo = parts
        full_name = f"{owner}/{repo}"
        return SourceInput(
            source_type=source_type,
            display_name=display_name or name_input,
            owner=owner,
            repo=repo,
            external_key=full_name,
            full_name=full_name,
            url=str(body["url"]) if body.get("url") else f"https://github.com/{full_name}",
            category=category,
            technology=technology,
            enabled=enabled,
            region_tags=region_tags,
            discovery_confidence=confidence,
            auto_discovered=bool(body.get("autoDiscovered")),
        )

    external_key = str(body.get("externalKey") or "").strip()
    if not external_key:
        raise SourceRequestError(f"{source_type} source requires externalKey")

    full_name = f"{ATS_KEY_PREFIXES[source_type]}/{external_key}"
    return SourceInput(
        source_type=source_type,
        display_name=display_name or full_name,
        owner=source_type,
        repo=external_key,
        external_key=external_key,
        full_name=full_name,
        url=str(body["url"]) if body.get("url") else ATS_DEFAULT_URLS[source_type].format(key=external_key),
        category=category,
        technology=technology,
        enabled=enabled,
        region_tags=region_tags,
        discovery_confidence=confidence,
        auto_discovered=bool(body.get("autoDiscovered")),
    )


def serialize_source(row: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": row["id"],
        "userId": row.get("user_id"),
        "sourceType": row.get("source_type"),
        "displayName": row.get("display_name"),
        "owner": row.get("owner"),
        "repo": row.get("repo"),
        "externalKey": row.get("external_key"),
        "fullName": row.get("full_name"),
        "url": row.get("url"),
        "category": row.get("category"),
        "technology": row.get("technology"),
        "attributionLabel": row.get("attribution_label"),
        "attributionUrl": row.get("attribution_url"),
        "termsUrl": row.get("terms_url"),
        "enabled": bool(row.get("enabled")),
        "autoDiscovered": bool(row.get("auto_discovered")),
        "discoveryConfidence": row.get("discovery_confidence"),
        "regionTags": list(row.get("region_tags") or []),
        "healthScore": row.get("health_score"),
        "healthStatus": row.get("health_status"),
        "healthBreakdown": dict(row.get("health_breakdown") or {}),
        "consecutiveFailures": row.get("consecutive_failures") or 0,
        "lastSuccessAt": to_iso(row.get("last_success_at")),
        "lastErrorAt": to_iso(row.get("last_error_at")),
        "lastErrorCode": row.get("last_error_code"),
        "lastErrorMessage": row.get("last_error_message"),
        "syncIntervalMinutes": row.get("sync_interval_minutes"),
        "nextSyncAt": to_iso(row.get("next_sync_at")),
        "throttledUntil": to_iso(row.get("throttled_until")),
        "lastScrapedAt": to_iso(row.get("last_scraped_at")),
        "totalJobsFetched": row.get("total_jobs_fetched") or 0,
        "createdAt": to_iso(row.get("created_at")),
    }


def list_sources(db, user_id: str, source_type: Optional[str] = None, status: Optional[str] = None) -> dict[str, Any]:
    rows = db.list_sources_for_user(user_id, source_type or None, status or None)
    return {"sources": [serialize_source(row) for row in rows]}


def _raise_if_blocked(check) -> None:
    if not check.ok:
        raise UpgradeRequiredError(check.feature, check.limit, check.period)


def create_source(db, plan_db, user_id: str, body: Mapping[str, Any]) -> dict[str, Any]:
    """
    Add a source owned by the user.

    Raises:
        SourceRequestError: If the request cannot be normalized
        DuplicateSourceError: If a source with the same full name exists
        UpgradeRequiredError: If enabling it would exceed the plan's source slots
    """
    source = normalize_source_input(body)

    if db.source_exists(source.full_name):
        raise DuplicateSourceError("Source already exists")

    if source.enabled:
        _raise_if_blocked(assert_within_source_enable_quota(plan_db, db, user_id, source.source_type))

    policy = get_source_policy(source.source_type)
    source_id = generate_id("src")
    db.insert_source(
        {
            "id": source_id,
            "user_id": user_id,
            "source_type": source.source_type,
            "display_name": source.display_name,
            "owner": source.owner,
            "repo": source.repo,
            "external_key": source.external_key,
            "full_name": source.full_name,
            "url": source.url,
            "category": source.category,
            "technology": source.technology,
            "attribution_label": policy.attribution_label,
            "attribution_url": policy.attribution_url,
            "terms_url": policy.terms_url,
            "enabled": source.enabled,
            "auto_discovered": source.auto_discovered,
            "discovery_confidence": int(round_half_up(source.discovery_confidence)),
            "region_tags": source.region_tags,
            "health_score": 100,
            "health_status": "healthy",
            "health_breakdown": dict(INITIAL_HEALTH_BREAKDOWN),
            "sync_interval_minutes": 30,
            "next_sync_at": utc_now(),
            "last_scraped_at": None,
            "total_jobs_fetched": 0,
        }
    )
    logger.info(
        "Source added",
        extra={"user_id": user_id, "source_id": source_id, "full_name": source.full_name},
    )
    return {"success": True, "id": source_id}


def clamp_sync_interval(value: Any) -> int:
    """
    Raises:
        SourceRequestError: If the value is not a finite number
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise SourceRequestError("syncIntervalMinutes must be a number")
    return max(MIN_SYNC_INTERVAL, min(MAX_SYNC_INTERVAL, round_half_up(value)))


def update_source_settings(db, plan_db, user_id: str, source_id: str, body: Mapping[str, Any]) -> dict[str, bool]:
    """
    Change a source the user owns.

    Accepts ``enabled``, ``syncIntervalMinutes`` (clamped to 5..1440),
    ``displayName``, ``category``, ``technology`` and ``regionTags``.
    Turning a disabled source on is checked against the plan's source slots.

    Raises:
        SourceNotFoundError: If the user owns no source with this id
        UpgradeRequiredError: If enabling would exceed the plan's source slots
    """
    source = db.get_source(source_id)
    if not source or source.get("user_id") != user_id:
        raise SourceNotFoundError("Source not found")

    fields: dict[str, Any] = {}
    if "enabled" in body and body["enabled"] is not None:
        enabled = bool(body["enabled"])
        if enabled and not source.get("enabled"):
            _raise_if_blocked(
                assert_within_source_enable_quota(plan_db, db, user_id, source.get("source_type") or "github_repo")
            )
        fields["enabled"] = enabled
    if body.get("syncIntervalMinutes") is not None:
        fields["sync_interval_minutes"] = clamp_sync_interval(body["syncIntervalMinutes"])
    if "displayName" in body:
        fields["display_name"] = str(body["displayName"]) if body["displayName"] else None
    if "category" in body:
        fields["category"] = str(body["category"] or "") or source.get("category")
    if "technology" in body:
        fields["technology"] = str(body["technology"]) if body["technology"] else None
    if isinstance(body.get("regionTags"), list):
        fields["region_tags"] = [str(tag) for tag in body["regionTags"]]

    if fields:
        db.update_source(source_id, fields)
        logger.info("Source updated", extra={"user_id": user_id, "source_id": source_id, "fields": sorted(fields)})
    return {"success": True}


def validate_source(
    db,
    plan_db,
    user_id: str,
    source_id: str,
    connector_factory: Optional[Callable[[str], SourceConnector]] = None,
) -> dict[str, Any]:
    """
    Test-fetch a source and score what came back, without storing jobs.

    Each call uses one unit of the daily ``source_validate`` quota.

    Raises:
        SourceNotFoundError: If the source is neither the user's nor shared
        UpgradeRequiredError: If today's validations are used up
        SourceValidationError: If the provider cannot be fetched
    """
    row = db.get_source(source_id)
    if not row or row.get("user_id") not in (None, user_id):
        raise SourceNotFoundError("Source not found")

    _raise_if_blocked(assert_within_source_daily_quota(plan_db, user_id, "source_validate"))

    source = SourceRecord.from_row(row)
    try:
        result = (connector_factory or get_source_connector)(source.source_type).fetch_jobs(source)
    except SourceFetchError as e:
        logger.warning(
            "Source validation failed",
            extra={"source_id": source_id, "status_code": e.status_code, "error": str(e)},
        )
        raise SourceValidationError(str(e)) from e

    fetched = len(result.jobs)
    parsed = sum(1 for job in result.jobs if job.body or job.apply_url)
    with_contact = sum(1 for job in result.jobs if "@" in (job.body or ""))
    health = compute_source_health(
        fetch_succeeded=True,
        had_compliance_issue=False,
        parse_success_ratio=parsed / fetched if fetched else 0,
        contact_yield_ratio=with_contact / fetched if fetched else 0,
        latency_ms=result.latency_ms,
        minutes_since_success=0,
        consecutive_failures=0,
    )

    return {
        "success": True,
        "source": source.full_name,
        "fetched": fetched,
        "sampleJobs": [
            {
                "externalJobId": job.external_job_id,
                "title": job.title,
                "updatedAt": job.updated_at,
                "issueUrl": job.issue_url,
            }
            for job in result.jobs[:SAMPLE_JOBS]
        ],
        "health": {
            "score": health.score,
            "status": health.status,
            "breakdown": health.breakdown,
            "throttleMinutes": health.throttle_minutes,
        },
        "httpStatus": result.http_status,
        "latencyMs": result.latency_ms,
    }
