"""
Database Operations for the sources service.

This module handles all database interactions for discovery and sync:
- Reading and updating ``repo_sources``
- Recording ``source_sync_runs`` (including the global sync lock row)
- Inserting and updating ``jobs``
"""

import logging
from typing import Any, Optional

from replyflow.common.db import BaseDB, as_json
from replyflow.common.utils import utc_now

logger = logging.getLogger(__name__)

GLOBAL_LOCK_ID = "__global__"

JOB_COLUMNS = (
    "id",
    "issue_url",
    "issue_number",
    "repo_owner",
    "repo_name",
    "repo_full_name",
    "title",
    "body",
    "labels",
    "created_at",
    "updated_at",
    "poster_username",
    "poster_avatar_url",
    "comments_count",
    "company",
    "role",
    "salary",
    "location",
    "contract_type",
    "experience_level",
    "tech_stack",
    "benefits",
    "apply_url",
    "contact_email",
    "contact_linkedin",
    "contact_whatsapp",
    "is_remote",
    "source_id",
    "source_type",
    "external_job_id",
    "outreach_status",
    "fetched_at",
    "parsed_at",
)

SOURCE_COLUMNS = (
    "id",
    "user_id",
    "source_type",
    "display_name",
    "owner",
    "repo",
    "external_key",
    "full_name",
    "url",
    "category",
    "technology",
    "attribution_label",
    "attribution_url",
    "terms_url",
    "enabled",
    "auto_discovered",
    "discovery_confidence",
    "region_tags",
    "health_score",
    "health_status",
    "health_breakdown",
    "sync_interval_minutes",
    "next_sync_at",
    "last_scraped_at",
    "total_jobs_fetched",
)


def _insert_statement(table: str, columns: tuple[str, ...]) -> str:
    placeholders = ", ".join(["%s"] * len(columns))
    return f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"


def _json_or_value(value: Any) -> Any:
    return as_json(value) if isinstance(value, (dict, list)) else value


class SourcesDB(BaseDB):
    """Database interface for sources, sync runs and jobs."""

    # Sources

    def list_enabled_sources(self) -> list[dict[str, Any]]:
        return self._fetch_all(
            "SELECT * FROM repo_sources WHERE enabled = TRUE ORDER BY created_at, full_name",
            action="list enabled sources",
        )

    def list_sources_for_user(
        self, user_id: str, source_type: Optional[str] = None, status: Optional[str] = None
    ) -> list[dict[str, Any]]:
        """The user's own sources plus the shared ones (``user_id`` NULL)."""
        query = "SELECT * FROM repo_sources WHERE (user_id = %s OR user_id IS NULL)"
        params: list[Any] = [user_id]
        if source_type:
            query += " AND source_type = %s"
            params.append(source_type)
        if status == "enabled":
            query += " AND enabled = TRUE"
        elif status == "disabled":
            query += " AND enabled = FALSE"
        query += " ORDER BY created_at, full_name"
        return self._fetch_all(query, params, action="list sources")

    def get_source(self, source_id: str) -> Optional[dict[str, Any]]:
        return self._fetch_one(
            "SELECT * FROM repo_sources WHERE id = %s", [source_id], action="get source"
        )

    def source_exists(self, full_name: str) -> bool:
        row = self._fetch_one(
            "SELECT id FROM repo_sources WHERE full_name = %s",
            [full_name],
            action="check source",
        )
        return row is not None

    def insert_source(self, source: dict[str, Any]) -> None:
        self._execute(
            _insert_statement("repo_sources", SOURCE_COLUMNS),
            [_json_or_value(source.get(column)) for column in SOURCE_COLUMNS],
            action="insert source",
        )
        logger.debug("Inserted source", extra={"full_name": source.get("full_name")})

    def update_source(self, source_id: str, fields: dict[str, Any]) -> int:
        return self._update_row("repo_sources", source_id, fields)

    def count_enabled_sources(self, user_id: Optional[str] = None) -> dict[str, int]:
        """Enabled source counts, restricted to one owner when ``user_id`` is given."""
        query = """
            SELECT
                COUNT(*) AS enabled_sources,
                COUNT(*) FILTER (WHERE source_type <> 'github_repo') AS enabled_ats_sources
            FROM repo_sources
            WHERE enabled = TRUE
        """
        params: list[Any] = []
        if user_id:
            query += " AND user_id = %s"
            params.append(user_id)
        row = self._fetch_one(query, params, action="count enabled sources") or {}
        return {
            "enabled_sources": int(row.get("enabled_sources") or 0),
            "enabled_ats_sources": int(row.get("enabled_ats_sources") or 0),
        }

    # Sync runs

    def get_running_lock(self) -> Optional[dict[str, Any]]:
        return self._fetch_one(
            """
            SELECT id, started_at FROM source_sync_runs
            WHERE source_id = %s AND status = 'running'
            ORDER BY started_at DESC
            LIMIT 1
            """,
            [GLOBAL_LOCK_ID],
            action="read sync lock",
        )

    def insert_sync_run(self, run_id: str, source_id: str) -> None:
        self._execute(
            """
            INSERT INTO source_sync_runs (id, source_id, started_at, status, total_fetched, new_jobs, duplicates)
            VALUES (%s, %s, %s, 'running', 0, 0, 0)
            """,
            [run_id, source_id, utc_now()],
            action="insert sync run",
        )

    def update_sync_run(self, run_id: str, fields: dict[str, Any]) -> int:
        return self._update_row("source_sync_runs", run_id, fields)

    # Jobs

    def find_job_by_issue_url(self, issue_url: str) -> Optional[dict[str, Any]]:
        return self._fetch_one(
            "SELECT * FROM jobs WHERE issue_url = %s", [issue_url], action="find job by url"
        )

    def find_job_by_external_id(self, source_id: str, external_job_id: str) -> Optional[dict[str, Any]]:
        return self._fetch_one(
            "SELECT * FROM jobs WHERE source_id = %s AND external_job_id = %s LIMIT 1",
            [source_id, external_job_id],
            action="find job by external id",
        )

    def insert_job(self, job: dict[str, Any]) -> None:
        self._execute(
            _insert_statement("jobs", JOB_COLUMNS),
            [_json_or_value(job.get(column)) for column in JOB_COLUMNS],
            action="insert job",
        )

    def update_job(self, job_id: str, fields: dict[str, Any]) -> int:
        return self._update_row("jobs", job_id, fields)

    def list_all_jobs(self) -> list[dict[str, Any]]:
        return self._fetch_all(
            """
            SELECT id, title, body, labels, issue_url, source_type, contact_email,
                   contact_linkedin, contact_whatsapp, apply_url
            FROM jobs ORDER BY fetched_at
            """,
            action="list jobs",
        )
