"""
Database Operations for plans, usage counters, users and profiles.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from psycopg2 import sql

from replyflow.common.db import BaseDB, as_json
from replyflow.common.utils import generate_id, utc_now

logger = logging.getLogger(__name__)

USAGE_COLUMNS = {
    "reveals": "reveals_used",
    "drafts": "drafts_used",
    "sends": "sends_used",
}

SOURCE_USAGE_COLUMNS = {
    "manual_sync": "manual_syncs_used",
    "source_validate": "source_validations_used",
}


class PlanDB(BaseDB):
    """Database interface for users, sessions, plans, usage and profiles."""

    # Users and sessions

    def get_session_user(self, session_token: str, now: Optional[datetime] = None) -> Optional[dict[str, Any]]:
        """Return the user behind an unexpired session token."""
        return self._fetch_one(
            """
            SELECT u.id, u.name, u.email, u.image
            FROM sessions s
            JOIN users u ON u.id = s.user_id
            WHERE s.session_token = %s AND s.expires > %s
            """,
            [session_token, now or utc_now()],
            action="look up session",
        )

    def get_user_by_id(self, user_id: str) -> Optional[dict[str, Any]]:
        return self._fetch_one(
            "SELECT id, name, email, image FROM users WHERE id = %s",
            [user_id],
            action="get user",
        )

    def get_user_by_email(self, email: str) -> Optional[dict[str, Any]]:
        return self._fetch_one(
            "SELECT id, name, email, image FROM users WHERE email = %s",
            [email],
            action="get user by email",
        )

    def insert_user(self, user_id: str, name: Optional[str], email: str, image: Optional[str]) -> None:
        now = utc_now()
        self._execute(
            """
            INSERT INTO users (id, name, email, image, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s)
            """,
            [user_id, name, email, image, now, now],
            action="insert user",
        )

    def update_user(self, user_id: str, fields: dict[str, Any]) -> int:
        return self._update_row("users", user_id, {**fields, "updated_at": utc_now()})

    # Plans

    def get_user_plan(self, user_id: str) -> Optional[dict[str, Any]]:
        return self._fetch_one(
            """
            SELECT user_id, plan, plan_started_at, plan_expires_at
            FROM user_plan WHERE user_id = %s
            """,
            [user_id],
            action="get user plan",
        )

    def insert_free_plan_if_missing(self, user_id: str) -> int:
        now = utc_now()
        return self._execute(
            """
            INSERT INTO user_plan (user_id, plan, plan_started_at, created_at, updated_at)
            VALUES (%s, 'free', %s, %s, %s)
            ON CONFLICT (user_id) DO NOTHING
            """,
            [user_id, now, now, now],
            action="insert free plan",
        )

    # Usage

    def get_usage(self, user_id: str, period_start: str) -> Optional[dict[str, Any]]:
        return self._fetch_one(
            """
            SELECT reveals_used, drafts_used, sends_used, period_start
            FROM usage_counters WHERE user_id = %s AND period_start = %s
            """,
            [user_id, period_start],
            action="get usage counters",
        )

    def insert_usage_if_missing(self, user_id: str, period_start: str) -> int:
        return self._execute(
            """
            INSERT INTO usage_counters (id, user_id, period_start, reveals_used, drafts_used, sends_used, updated_at)
            VALUES (%s, %s, %s, 0, 0, 0, %s)
            ON CONFLICT (user_id, period_start) DO NOTHING
            """,
            [generate_id(), user_id, period_start, utc_now()],
            action="insert usage counters",
        )

    def consume_usage(
        self,
        user_id: str,
        period_start: str,
        feature: str,
        cost: int,
        limit: Optional[int] = None,
    ) -> Optional[int]:
        """
        Add ``cost`` to a usage counter in one conditional statement.

        Concurrent requests cannot both pass the check: the counter only moves
        while ``used + cost <= limit`` holds for the row being updated.

        Args:
            user_id: User id
            period_start: Usage period (YYYY-MM-01)
            feature: reveals, drafts or sends
            cost: Units to consume
            limit: Monthly limit; None consumes unconditionally

        Returns:
            The new counter value, or None when the limit would be exceeded
            (or the period row does not exist)
        """
        return self._consume_counter(
            "usage_counters", "period_start", USAGE_COLUMNS[feature], user_id, period_start, cost, limit
        )

    # Daily source usage

    def get_source_usage(self, user_id: str, day_start: str) -> Optional[dict[str, Any]]:
        return self._fetch_one(
            """
            SELECT manual_syncs_used, source_validations_used, day_start
            FROM source_usage_daily WHERE user_id = %s AND day_start = %s
            """,
            [user_id, day_start],
            action="get source usage",
        )

    def insert_source_usage_if_missing(self, user_id: str, day_start: str) -> int:
        return self._execute(
            """
            INSERT INTO source_usage_daily (
                id, user_id, day_start, manual_syncs_used, source_validations_used, updated_at
            ) VALUES (%s, %s, %s, 0, 0, %s)
            ON CONFLICT (user_id, day_start) DO NOTHING
            """,
            [generate_id(), user_id, day_start, utc_now()],
            action="insert source usage",
        )

    def consume_source_usage(
        self, user_id: str, day_start: str, kind: str, cost: int = 1, limit: Optional[int] = None
    ) -> Optional[int]:
        """Daily counterpart of :meth:`consume_usage` for manual_sync and source_validate."""
        return self._consume_counter(
            "source_usage_daily",
            "day_start",
            SOURCE_USAGE_COLUMNS[kind],
            user_id,
            day_start,
            cost,
            limit,
        )

    def _consume_counter(
        self,
        table: str,
        period_column: str,
        counter_column: str,
        user_id: str,
        period: str,
        cost: int,
        limit: Optional[int],
    ) -> Optional[int]:
        column = sql.Identifier(counter_column)
        params: list[Any] = [cost, utc_now(), user_id, period]
        condition = sql.SQL("")
        if limit is not None:
            condition = sql.SQL(" AND {col} + %s <= %s").format(col=column)
            params += [cost, limit]

        query = sql.SQL(
            "UPDATE {table} SET {col} = {col} + %s, updated_at = %s "
            "WHERE user_id = %s AND {period} = %s{condition} "
            "RETURNING {col} AS used"
        ).format(
            table=sql.Identifier(table),
            col=column,
            period=sql.Identifier(period_column),
            condition=condition,
        )
        row = self._fetch_one(query, params, action=f"consume {counter_column}")
        return row["used"] if row else None

    # Profiles

    def get_profile(self, user_id: str) -> Optional[dict[str, Any]]:
        return self._fetch_one(
            "SELECT * FROM user_profile WHERE user_id = %s",
            [user_id],
            action="get profile",
        )

    def insert_default_profile(self, user_id: str) -> int:
        return self._execute(
            """
            INSERT INTO user_profile (
                id, user_id, name, email, skills, experience_years, experience_level,
                preferred_contract_types, preferred_locations, prefer_remote, highlights, updated_at
            ) VALUES (%s, %s, '', '', %s, 0, 'Pleno', %s, %s, TRUE, %s, %s)
            ON CONFLICT (user_id) DO NOTHING
            """,
            [
                generate_id(),
                user_id,
                as_json([]),
                as_json(["CLT", "PJ"]),
                as_json([]),
                as_json([]),
                utc_now(),
            ],
            action="insert default profile",
        )

    def update_profile(self, user_id: str, fields: dict[str, Any]) -> int:
        """Update profile columns; list fields are stored as JSONB."""
        return self._update_row(
            "user_profile", user_id, {**fields, "updated_at": utc_now()}, key="user_id"
        )
