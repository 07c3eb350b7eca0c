"""
Database Operations for the job board.

This module handles the read side of ``jobs`` for one user:
- The filtered, paged listing joined with the user's outreach status,
  match score and reveal
- Dashboard counters
"""

import logging
from typing import Any, Optional

from replyflow.common.db import BaseDB

from .query import JobQuery

logger = logging.getLogger(__name__)

HAS_EMAIL = "COALESCE(TRIM(j.contact_email), '') <> ''"
NO_EMAIL = "COALESCE(TRIM(j.contact_email), '') = ''"
HAS_APPLY_URL = "COALESCE(TRIM(j.apply_url), '') <> ''"
LAST_ACTIVITY = "COALESCE(NULLIF(j.updated_at, ''), j.created_at)"

LISTING_FROM = """
    FROM jobs j
    LEFT JOIN outreach_records o ON o.job_id = j.id AND o.user_id = %s
    LEFT JOIN job_match_scores s ON s.job_id = j.id AND s.user_id = %s
"""

OPPORTUNITY_ORDER = (
    "LEAST(GREATEST(COALESCE(s.score, 0), 0), 100)"
    f" + CASE WHEN {HAS_EMAIL} THEN 20 ELSE 0 END"
    f" + CASE WHEN {NO_EMAIL} AND {HAS_APPLY_URL} THEN 8 ELSE 0 END"
    f" + CASE WHEN {LAST_ACTIVITY} >= %s THEN 12 ELSE 0 END"
)

ORDER_BY = {
    "newest": "j.created_at DESC",
    "oldest": "j.created_at ASC",
    "comments": "j.comments_count DESC, j.created_at DESC",
    "updated": "j.updated_at DESC",
    "matchScore": "s.score DESC NULLS LAST, j.created_at DESC",
    "opportunity": f"{OPPORTUNITY_ORDER} DESC, j.created_at DESC",
}

GROUPABLE_COLUMNS = ("contract_type", "experience_level", "repo_full_name")


def _listing_filters(query: JobQuery, stale_cutoff: str) -> tuple[list[str], list[Any]]:
    conditions: list[str] = []
    params: list[Any] = []

    if query.search:
        pattern = f"%{query.search}%"
        conditions.append(
            "(j.title ILIKE %s OR j.company ILIKE %s OR j.body ILIKE %s OR j.tech_stack::text ILIKE %s)"
        )
        params += [pattern] * 4
    if query.repo:
        conditions.append("j.repo_full_name = %s")
        params.append(query.repo)
    if query.source_type:
        conditions.append("j.source_type = %s")
        params.append(query.source_type)
    if query.source_id:
        conditions.append("j.source_id = %s")
        params.append(query.source_id)
    if query.remote_only:
        conditions.append("j.is_remote = TRUE")
    if query.contract_type:
        conditions.append("j.contract_type = %s")
        params.append(query.contract_type)
    if query.level:
        conditions.append("j.experience_level = %s")
        params.append(query.level)
    if query.hide_stale:
        conditions.append(f"{LAST_ACTIVITY} >= %s")
        params.append(stale_cutoff)

    if query.contact_type == "hasEmail":
        conditions.append(HAS_EMAIL)
    elif query.contact_type == "atsOnly":
        conditions.append(f"{NO_EMAIL} AND {HAS_APPLY_URL}")

    keywords = query.role_keywords()
    if keywords:
        conditions.append("(" + " OR ".join(["LOWER(j.title) LIKE %s"] * len(keywords)) + ")")
        params += [f"%{keyword.lower()}%" for keyword in keywords]

    if query.outreach_status == "none":
        conditions.append("COALESCE(o.status, 'none') = 'none'")
    elif query.outreach_status and query.outreach_status != "all":
        conditions.append("o.status = %s")
        params.append(query.outreach_status)

    if query.min_match_score is not None:
        conditions.append("s.score >= %s")
        params.append(query.min_match_score)

    return conditions, params


class JobsDB(BaseDB):
    """Database interface for the per-user job board and dashboard."""

    # Listing

    def list_jobs(self, user_id: str, query: JobQuery, stale_cutoff: str) -> tuple[list[dict[str, Any]], int]:
        """
        Return one page of jobs and the total number of matching jobs.

        Rows carry the job columns plus ``user_outreach_status``,
        ``match_score``, ``match_reasons``, ``match_missing_skills``,
        ``match_breakdown``, ``has_reveal`` and the ``src_*`` columns of
        the job's source.
        """
        conditions, filter_params = _listing_filters(query, stale_cutoff)
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        join_params: list[Any] = [user_id, user_id]

        count_row = self._fetch_one(
            f"SELECT COUNT(*) AS total {LISTING_FROM} {where}",
            join_params + filter_params,
            action="count jobs",
        ) or {}

        order_params: list[Any] = [stale_cutoff] if query.sort == "opportunity" else []
        rows = self._fetch_all(
            f"""
            SELECT j.*,
                   COALESCE(o.status, 'none') AS user_outreach_status,
                   s.score AS match_score,
                   s.reasons AS match_reasons,
                   s.missing_skills AS match_missing_skills,
                   s.breakdown AS match_breakdown,
                   EXISTS (
                       SELECT 1 FROM job_reveals r WHERE r.job_id = j.id AND r.user_id = %s
                   ) AS has_reveal,
                   rs.id AS src_id,
                   rs.source_type AS src_type,
                   rs.display_name AS src_display_name,
                   rs.full_name AS src_full_name,
                   rs.health_score AS src_health_score,
                   rs.health_status AS src_health_status,
                   rs.attribution_label AS src_attribution_label,
                   rs.attribution_url AS src_attribution_url
            {LISTING_FROM}
            LEFT JOIN repo_sources rs ON rs.id = j.source_id
            {where}
            ORDER BY {ORDER_BY[query.sort]}
            LIMIT %s OFFSET %s
            """,
            [user_id] + join_params + filter_params + order_params + [query.limit, query.offset],
            action="list jobs",
        )
        return rows, int(count_row.get("total") or 0)

    # Dashboard

    def get_job_totals(self, today_start: str, week_start: str) -> dict[str, int]:
        row = self._fetch_one(
            f"""
            SELECT
                COUNT(*) AS total_jobs,
                COUNT(*) FILTER (WHERE j.created_at >= %s) AS new_jobs_today,
                COUNT(*) FILTER (WHERE j.created_at >= %s) AS new_jobs_this_week,
                COUNT(*) FILTER (WHERE j.is_remote) AS remote_jobs,
                COUNT(*) FILTER (WHERE {HAS_EMAIL}) AS jobs_with_email,
                COUNT(DISTINCT LOWER(TRIM(j.contact_email))) FILTER (WHERE {HAS_EMAIL})
                    AS unique_recruiter_emails,
                COUNT(DISTINCT LOWER(SPLIT_PART(TRIM(j.contact_email), '@', 2)))
                    FILTER (WHERE j.contact_email LIKE '%%@%%') AS unique_recruiter_domains,
                COUNT(*) FILTER (WHERE {NO_EMAIL} AND {HAS_APPLY_URL}) AS jobs_ats_only
            FROM jobs j
            """,
            [today_start, week_start],
            action="count jobs for dashboard",
        ) or {}
        return {key: int(value or 0) for key, value in row.items()}

    def count_jobs_by(self, column: str, limit: Optional[int] = None) -> list[dict[str, Any]]:
        """
        Job counts grouped by ``column``, largest group first.

        Raises:
            ValueError: If the column cannot be grouped on
        """
        if column not in GROUPABLE_COLUMNS:
            raise ValueError(f"Cannot group jobs by {column}")

        query = (
            f"SELECT {column} AS value, COUNT(*) AS count FROM jobs "
            f"WHERE {column} IS NOT NULL GROUP BY {column} ORDER BY count DESC, value"
        )
        params: list[Any] = []
        if limit:
            query += " LIMIT %s"
            params.append(limit)
        return self._fetch_all(query, params, action=f"count jobs by {column}")

    def count_outreach_by_status(self, user_id: str) -> dict[str, int]:
        rows = self._fetch_all(
            "SELECT status, COUNT(*) AS count FROM outreach_records WHERE user_id = %s GROUP BY status",
            [user_id],
            action="count outreach by status",
        )
        return {row["status"]: int(row["count"]) for row in rows}

    def get_match_score_summary(self, user_id: str) -> dict[str, Any]:
        row = self._fetch_one(
            """
            SELECT COUNT(*) AS scored_jobs, MAX(calculated_at) AS last_calculated_at
            FROM job_match_scores WHERE user_id = %s
            """,
            [user_id],
            action="summarize match scores",
        ) or {}
        return {
            "scored_jobs": int(row.get("scored_jobs") or 0),
            "last_calculated_at": row.get("last_calculated_at"),
        }
