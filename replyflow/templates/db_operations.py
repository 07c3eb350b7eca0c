"""
Database Operations for email templates.

Templates with a NULL ``user_id`` are global and visible to every user.
"""

import logging
from typing import Any, Optional

from replyflow.common.db import BaseDB, as_json
from replyflow.common.utils import utc_now

logger = logging.getLogger(__name__)

TEMPLATE_COLUMNS = (
    "id",
    "user_id",
    "name",
    "description",
    "type",
    "language",
    "subject",
    "subject_variants",
    "body",
    "is_default",
    "usage_count",
    "created_at",
    "updated_at",
)


class TemplatesDB(BaseDB):
    """Database interface for the ``email_templates`` table."""

    def list_templates(
        self, user_id: Optional[str], language: Optional[str] = None, template_type: Optional[str] = None
    ) -> list[dict[str, Any]]:
        """The user's own templates plus the global ones (only global ones without a user)."""
        if user_id:
            query = "SELECT * FROM email_templates WHERE (user_id = %s OR user_id IS NULL)"
            params: list[Any] = [user_id]
        else:
            query = "SELECT * FROM email_templates WHERE user_id IS NULL"
            params = []
        if language:
            query += " AND language = %s"
            params.append(language)
        if template_type:
            query += " AND type = %s"
            params.append(template_type)
        query += " ORDER BY is_default DESC, language, type, name"
        return self._fetch_all(query, params, action="list templates")

    def get_template(self, template_id: str) -> Optional[dict[str, Any]]:
        return self._fetch_one(
            "SELECT * FROM email_templates WHERE id = %s", [template_id], action="get template"
        )

    def insert_template(self, template: dict[str, Any]) -> None:
        now = utc_now()
        row = {"is_default": False, "usage_count": 0, "created_at": now, "updated_at": now, **template}
        if row.get("subject_variants") is not None:
            row["subject_variants"] = as_json(row["subject_variants"])
        columns = [column for column in TEMPLATE_COLUMNS if column in row]
        self._execute(
            f"INSERT INTO email_templates ({', '.join(columns)}) "
            f"VALUES ({', '.join(['%s'] * len(columns))})",
            [row[column] for column in columns],
            action="insert template",
        )
        logger.debug("Inserted template", extra={"template_id": template["id"]})

    def update_template(self, template_id: str, fields: dict[str, Any]) -> int:
        return self._update_row("email_templates", template_id, {**fields, "updated_at": utc_now()})

    def delete_template(self, template_id: str) -> int:
        return self._execute(
            "DELETE FROM email_templates WHERE id = %s", [template_id], action="delete template"
        )

    def count_global_templates(self) -> int:
        row = self._fetch_one(
            "SELECT COUNT(*) AS count FROM email_templates WHERE user_id IS NULL",
            action="count global templates",
        ) or {}
        return int(row.get("count") or 0)
