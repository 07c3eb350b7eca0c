"""
Job board listing.

Turns the rows of :meth:`JobsDB.list_jobs` into the API shape: contact
fields masked until the user reveals the job, per-user outreach status and
match explanation, staleness and the opportunity score used for ranking.
"""

import logging
from collections.abc import Mapping
from datetime import datetime
from math import ceil
from typing import Any, Optional

from replyflow.common.utils import clamp, parse_iso, to_iso, utc_now
from replyflow.plan.service import get_effective_plan

from .query import JobQuery

logger = logging.getLogger(__name__)

MASKED = "***"
CONTACT_FIELDS = {
    "contactEmail": "contact_email",
    "contactLinkedin": "contact_linkedin",
    "contactWhatsapp": "contact_whatsapp",
}
EMPTY_BREAKDOWN = {"skills": 0, "remote": 0, "contract": 0, "level": 0, "location": 0}

JOB_FIELDS = {
    "id": "id",
    "issueUrl": "issue_url",
    "issueNumber": "issue_number",
    "repoOwner": "repo_owner",
    "repoName": "repo_name",
    "repoFullName": "repo_full_name",
    "title": "title",
    "body": "body",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "posterUsername": "poster_username",
    "posterAvatarUrl": "poster_avatar_url",
    "commentsCount": "comments_count",
    "company": "company",
    "role": "role",
    "salary": "salary",
    "location": "location",
    "contractType": "contract_type",
    "experienceLevel": "experience_level",
    "benefits": "benefits",
    "applyUrl": "apply_url",
    "isRemote": "is_remote",
    "sourceId": "source_id",
    "sourceType": "source_type",
    "externalJobId": "external_job_id",
}


def days_since_activity(job: Mapping[str, Any], now: Optional[datetime] = None) -> Optional[float]:
    last_activity = parse_iso(job.get("updated_at")) or parse_iso(job.get("created_at"))
    if last_activity is None:
        return None
    return ((now or utc_now()) - last_activity).total_seconds() / 86400


def opportunity_score(job: Mapping[str, Any], match_score: Optional[float], is_stale: bool) -> float:
    """
    Rank a posting by how actionable it is.

    The clamped match score, plus 20 for a recruiter email, 8 for an apply
    link without an email and 12 for a fresh posting.
    """
    has_email = bool((job.get("contact_email") or "").strip())
    has_apply_url = bool((job.get("apply_url") or "").strip())
    score = clamp(match_score or 0)
    if has_email:
        score += 20
    elif has_apply_url:
        score += 8
    if not is_stale:
        score += 12
    return score


def _source_summary(row: Mapping[str, Any]) -> Optional[dict[str, Any]]:
    if not row.get("src_id"):
        return None
    return {
        "id": row["src_id"],
        "type": row.get("src_type"),
        "displayName": row.get("src_display_name") or row.get("src_full_name"),
        "healthScore": row.get("src_health_score"),
        "healthStatus": row.get("src_health_status"),
        "attributionLabel": row.get("src_attribution_label"),
        "attributionUrl": row.get("src_attribution_url"),
    }


def serialize_job(
    row: Mapping[str, Any], revealed: bool, stale_days: int, now: Optional[datetime] = None
) -> dict[str, Any]:
    """Listing item for one joined row; unrevealed contact values become "***"."""
    age_days = days_since_activity(row, now)
    is_stale = age_days is not None and age_days > stale_days
    match_score = row.get("match_score")

    item = {key: row.get(column) for key, column in JOB_FIELDS.items()}
    item.update(
        {
            "labels": list(row.get("labels") or []),
            "techStack": list(row.get("tech_stack") or []),
            "fetchedAt": to_iso(row.get("fetched_at")),
            "parsedAt": to_iso(row.get("parsed_at")),
            "outreachStatus": row.get("user_outreach_status") or "none",
            "matchScore": match_score,
            "isRevealed": revealed,
            "hasContact": any(row.get(column) for column in CONTACT_FIELDS.values()),
            "isStale": is_stale,
            "source": _source_summary(row),
            "matchExplain": {
                "reasons": list(row.get("match_reasons") or []),
                "missingSkills": list(row.get("match_missing_skills") or []),
                "breakdown": dict(row.get("match_breakdown") or EMPTY_BREAKDOWN),
            },
            "opportunityScore": opportunity_score(row, match_score, is_stale),
        }
    )
    for key, column in CONTACT_FIELDS.items():
        value = row.get(column)
        item[key] = value if revealed or not value else MASKED
    return item


def list_jobs(db, plan_db, user_id: str, query: JobQuery) -> dict[str, Any]:
    """
    One page of the job board for a user.

    Args:
        db: JobsDB (or compatible) instance
        plan_db: PlanDB used to resolve the plan (Pro sees every contact)
        user_id: Requesting user
        query: Filters, sort and paging

    Returns:
        Dict with ``jobs`` and ``pagination`` (page, limit, total, totalPages)
    """
    now = utc_now()
    is_pro = get_effective_plan(plan_db, user_id) == "pro"
    rows, total = db.list_jobs(user_id, query, query.stale_cutoff(now))

    jobs = [
        serialize_job(row, is_pro or bool(row.get("has_reveal")), query.stale_days, now)
        for row in rows
    ]
    logger.debug("Listed jobs", extra={"user_id": user_id, "count": len(jobs), "total": total})

    return {
        "jobs": jobs,
        "pagination": {
            "page": query.page,
            "limit": query.limit,
            "total": total,
            "totalPages": ceil(total / query.limit),
        },
    }
