"""
Database Operations for the Matcher Service

This module handles all database interactions for the matcher:
- Reading user profiles and jobs
- Upserting per-user scores into job_match_scores
"""

import logging
from typing import Any, Optional

import psycopg2
import psycopg2.extras

from replyflow.common.db import BaseDB, DatabaseError, as_json
from replyflow.common.utils import generate_id, utc_now

logger = logging.getLogger(__name__)

UPSERT_MATCH_SCORE_SQL = """
    INSERT INTO job_match_scores (
        id, user_id, job_id, score, reasons, missing_skills, breakdown, calculated_at
    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
    ON CONFLICT (user_id, job_id) DO UPDATE SET
        score = EXCLUDED.score,
        reasons = EXCLUDED.reasons,
        missing_skills = EXCLUDED.missing_skills,
        breakdown = EXCLUDED.breakdown,
        calculated_at = EXCLUDED.calculated_at
"""


class MatcherDB(BaseDB):
    """Database interface for the matcher service."""

    def get_profile(self, user_id: str) -> Optional[dict[str, Any]]:
        return self._fetch_one(
            "SELECT * FROM user_profile WHERE user_id = %s", [user_id], action="get profile"
        )

    def list_profile_user_ids(self) -> list[str]:
        rows = self._fetch_all(
            "SELECT user_id FROM user_profile ORDER BY user_id", action="list profiles"
        )
        return [row["user_id"] for row in rows]

    def fetch_jobs_for_matching(self) -> list[dict[str, Any]]:
        return self._fetch_all(
            """
            SELECT id, title, tech_stack, contract_type, experience_level,
                   is_remote, location, salary, labels
            FROM jobs
            """,
            action="fetch jobs for matching",
        )

    def upsert_match_scores_batch(self, user_id: str, scores: list[dict[str, Any]]) -> int:
        """
        Upsert many scores for one user in a single transaction.

        Args:
            user_id: Owner of the scores
            scores: Dicts with keys job_id, score, reasons, missing_skills, breakdown

        Returns:
            Number of rows written

        Raises:
            DatabaseError: If the transaction fails
        """
        if not scores:
            logger.warning("No match scores to update", extra={"user_id": user_id})
            return 0

        now = utc_now()
        rows = [
            (
                generate_id("ms"),
                user_id,
                item["job_id"],
                item["score"],
                as_json(item["reasons"]),
                as_json(item["missing_skills"]),
                as_json(item["breakdown"]),
                now,
            )
            for item in scores
        ]

        try:
            with self._get_connection() as conn, conn.cursor() as cur:
                psycopg2.extras.execute_batch(cur, UPSERT_MATCH_SCORE_SQL, rows)
        except psycopg2.Error as e:
            logger.error(
                "Batch match score upsert failed", extra={"error": str(e), "pgcode": e.pgcode}
            )
            raise DatabaseError(f"Batch match score upsert failed: {e}") from e

        logger.info(
            "Upserted match scores",
            extra={"user_id": user_id, "count": len(rows)},
        )
        return len(rows)

    def get_match_stats(self, user_id: str) -> dict[str, Any]:
        row = self._fetch_one(
            """
            SELECT COUNT(*) AS scored_jobs, AVG(score) AS average_score, MAX(score) AS top_score
            FROM job_match_scores WHERE user_id = %s
            """,
            [user_id],
            action="get match stats",
        ) or {}
        return {
            "scored_jobs": int(row.get("scored_jobs") or 0),
            "average_score": float(row["average_score"]) if row.get("average_score") else None,
            "top_score": float(row["top_score"]) if row.get("top_score") else None,
        }
