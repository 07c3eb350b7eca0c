"""
Database Operations for outreach.

This module handles all database interactions for outreach:
- Jobs and per-user reveals
- Outreach records (one per user and job)
- Outbound email log
"""

import logging
from typing import Any, Optional

from replyflow.common.db import BaseDB
from replyflow.common.utils import generate_id, utc_now

logger = logging.getLogger(__name__)

OUTREACH_COLUMNS = (
    "id",
    "user_id",
    "job_id",
    "status",
    "email_subject",
    "email_body",
    "recipient_email",
    "sent_at",
    "followed_up_at",
    "replied_at",
    "notes",
    "created_at",
    "updated_at",
)

OUTBOUND_COLUMNS = (
    "id",
    "user_id",
    "outreach_id",
    "contact_id",
    "recipient_email",
    "sender_email",
    "reply_to",
    "subject",
    "body_text",
    "status",
    "provider",
    "provider_message_id",
    "sent_at",
    "failed_at",
    "error_code",
    "error_message",
    "created_at",
)


class OutreachDB(BaseDB):
    """Database interface for reveals, outreach records and outbound emails."""

    # Jobs and reveals

    def get_job(self, job_id: str) -> Optional[dict[str, Any]]:
        return self._fetch_one("SELECT * FROM jobs WHERE id = %s", [job_id], action="get job")

    def has_reveal(self, user_id: str, job_id: str) -> bool:
        row = self._fetch_one(
            "SELECT id FROM job_reveals WHERE user_id = %s AND job_id = %s",
            [user_id, job_id],
            action="check reveal",
        )
        return row is not None

    def insert_reveal(self, user_id: str, job_id: str) -> int:
        return self._execute(
            """
            INSERT INTO job_reveals (id, user_id, job_id, created_at)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (user_id, job_id) DO NOTHING
            """,
            [generate_id("rv"), user_id, job_id, utc_now()],
            action="insert reveal",
        )

    def list_revealed_job_ids(self, user_id: str) -> set[str]:
        rows = self._fetch_all(
            "SELECT job_id FROM job_reveals WHERE user_id = %s", [user_id], action="list reveals"
        )
        return {row["job_id"] for row in rows}

    # Outreach records

    def get_outreach_for_job(self, user_id: str, job_id: str) -> Optional[dict[str, Any]]:
        return self._fetch_one(
            "SELECT * FROM outreach_records WHERE user_id = %s AND job_id = %s",
            [user_id, job_id],
            action="get outreach for job",
        )

    def get_outreach(self, user_id: str, outreach_id: str) -> Optional[dict[str, Any]]:
        return self._fetch_one(
            "SELECT * FROM outreach_records WHERE id = %s AND user_id = %s",
            [outreach_id, user_id],
            action="get outreach",
        )

    def insert_outreach(self, record: dict[str, Any]) -> None:
        now = utc_now()
        row = {"created_at": now, "updated_at": now, **record}
        columns = [column for column in OUTREACH_COLUMNS if column in row]
        self._execute(
            f"INSERT INTO outreach_records ({', '.join(columns)}) "
            f"VALUES ({', '.join(['%s'] * len(columns))})",
            [row[column] for column in columns],
            action="insert outreach",
        )

    def update_outreach(self, outreach_id: str, fields: dict[str, Any]) -> int:
        return self._update_row("outreach_records", outreach_id, {**fields, "updated_at": utc_now()})

    def list_outreach_with_jobs(self, user_id: str, status: Optional[str] = None) -> list[dict[str, Any]]:
        """Outreach records joined with their job, newest update first."""
        query = """
            SELECT o.*, row_to_json(j) AS job
            FROM outreach_records o
            JOIN jobs j ON j.id = o.job_id
            WHERE o.user_id = %s
        """
        params: list[Any] = [user_id]
        if status:
            query += " AND o.status = %s"
            params.append(status)
        query += " ORDER BY o.updated_at DESC"
        return self._fetch_all(query, params, action="list outreach")

    # Outbound emails

    def insert_outbound_email(self, email: dict[str, Any]) -> str:
        email_id = email.get("id") or generate_id("email")
        row = {"created_at": utc_now(), **email, "id": email_id}
        columns = [column for column in OUTBOUND_COLUMNS if column in row]
        self._execute(
            f"INSERT INTO outbound_emails ({', '.join(columns)}) "
            f"VALUES ({', '.join(['%s'] * len(columns))})",
            [row[column] for column in columns],
            action="insert outbound email",
        )
        return email_id

    def update_outbound_email(self, email_id: str, fields: dict[str, Any]) -> int:
        return self._update_row("outbound_emails", email_id, fields)

    def list_outbound_emails(self, user_id: str, status: Optional[str] = None) -> list[dict[str, Any]]:
        query = "SELECT * FROM outbound_emails WHERE user_id = %s"
        params: list[Any] = [user_id]
        if status:
            query += " AND status = %s"
            params.append(status)
        query += " ORDER BY created_at DESC"
        return self._fetch_all(query, params, action="list outbound emails")
