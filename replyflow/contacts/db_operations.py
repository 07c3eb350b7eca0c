"""
Database Operations for the contacts CRM.

Contacts are per-user rows keyed case-insensitively by email. Job sync,
reveals and outreach all funnel through here.
"""

import logging
from typing import Any, Optional

from replyflow.common.db import BaseDB, as_json
from replyflow.common.utils import utc_now

logger = logging.getLogger(__name__)


class ContactsDB(BaseDB):
    """Database interface for the ``contacts`` table."""

    def find_contact_by_email(self, user_id: str, email: str) -> Optional[dict[str, Any]]:
        return self._fetch_one(
            """
            SELECT id, user_id, email, name, company, position, source, source_ref,
                   status, custom_fields, last_contacted_at
            FROM contacts
            WHERE user_id = %s AND LOWER(email) = LOWER(%s)
            LIMIT 1
            """,
            [user_id, email],
            action="find contact",
        )

    def insert_contact(self, contact: dict[str, Any]) -> None:
        now = utc_now()
        self._execute(
            """
            INSERT INTO contacts (
                id, user_id, email, name, company, position, source, source_ref,
                status, notes, custom_fields, created_at, updated_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            """,
            [
                contact["id"],
                contact["user_id"],
                contact["email"],
                contact.get("name"),
                contact.get("company"),
                contact.get("position"),
                contact.get("source", "job_sync"),
                contact.get("source_ref"),
                contact.get("status", "lead"),
                contact.get("notes"),
                as_json(contact.get("custom_fields") or {}),
                now,
                now,
            ],
            action="insert contact",
        )
        logger.debug("Inserted contact", extra={"contact_id": contact["id"]})

    def update_contact(self, contact_id: str, fields: dict[str, Any]) -> int:
        return self._update_row("contacts", contact_id, {**fields, "updated_at": utc_now()})

    def list_contacts(self, user_id: str, status: Optional[str] = None) -> list[dict[str, Any]]:
        query = "SELECT * FROM contacts WHERE user_id = %s"
        params: list[Any] = [user_id]
        if status:
            query += " AND status = %s"
            params.append(status)
        query += " ORDER BY updated_at DESC"
        return self._fetch_all(query, params, action="list contacts")

    def get_contact(self, user_id: str, contact_id: str) -> Optional[dict[str, Any]]:
        return self._fetch_one(
            "SELECT * FROM contacts WHERE id = %s AND user_id = %s",
            [contact_id, user_id],
            action="get contact",
        )

    def delete_contact(self, user_id: str, contact_id: str) -> int:
        return self._execute(
            "DELETE FROM contacts WHERE id = %s AND user_id = %s",
            [contact_id, user_id],
            action="delete contact",
        )

    def touch_last_contacted(self, user_id: str, email: str) -> int:
        now = utc_now()
        return self._execute(
            """
            UPDATE contacts SET last_contacted_at = %s, updated_at = %s
            WHERE user_id = %s AND LOWER(email) = LOWER(%s)
            """,
            [now, now, user_id, email],
            action="update contact last_contacted_at",
        )

    def list_user_ids(self) -> list[str]:
        rows = self._fetch_all("SELECT id FROM users ORDER BY created_at", action="list users")
        return [row["id"] for row in rows]
