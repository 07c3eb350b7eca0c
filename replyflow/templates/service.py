"""
Email template library.

Users keep their own templates next to the global ones (``user_id`` NULL),
which are read-only and seeded from `config/templates.yml`.
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

import yaml

from replyflow.common.utils import generate_id, to_iso

logger = logging.getLogger(__name__)

DEFAULT_SEED_PATH = Path(__file__).resolve().parents[2] / "config" / "templates.yml"
REQUIRED_FIELDS = ("name", "type", "language", "subject", "body")
EDITABLE_FIELDS = ("name", "description", "subject", "subject_variants", "body")


class TemplateError(Exception):
    status_code = 400


class TemplateNotFoundError(TemplateError):
    status_code = 404


class TemplateAccessError(TemplateError):
    """The template belongs to another user."""

    status_code = 401


class GlobalTemplateError(TemplateError):
    """Global templates cannot be deleted."""

    status_code = 403


def _variants(value: Any) -> list[str]:
    if isinstance(value, list):
        return [str(item) for item in value]
    return []


def serialize_template(row: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": row["id"],
        "name": row.get("name"),
        "description": row.get("description"),
        "type": row.get("type"),
        "language": row.get("language"),
        "subject": row.get("subject"),
        "subjectVariants": _variants(row.get("subject_variants")),
        "body": row.get("body"),
        "isDefault": bool(row.get("is_default")),
        "usageCount": int(row.get("usage_count") or 0),
        "isGlobal": row.get("user_id") is None,
        "createdAt": to_iso(row.get("created_at")),
        "updatedAt": to_iso(row.get("updated_at")),
    }


def list_templates(
    db, user_id: str, language: Optional[str] = None, template_type: Optional[str] = None
) -> list[dict[str, Any]]:
    rows = db.list_templates(user_id, language or None, template_type or None)
    return [serialize_template(row) for row in rows]


def _owned_template(db, user_id: str, template_id: str) -> dict[str, Any]:
    template = db.get_template(template_id)
    if not template:
        raise TemplateNotFoundError("Template not found")
    if template.get("user_id") is None:
        raise GlobalTemplateError("Cannot modify global templates")
    if template["user_id"] != user_id:
        raise TemplateAccessError("Unauthorized")
    return template


def get_template(db, user_id: str, template_id: str) -> dict[str, Any]:
    """
    Raises:
        TemplateNotFoundError: If the template does not exist
        TemplateAccessError: If it is another user's template
    """
    template = db.get_template(template_id)
    if not template:
        raise TemplateNotFoundError("Template not found")
    if template.get("user_id") is not None and template["user_id"] != user_id:
        raise TemplateAccessError("Unauthorized")
    return serialize_template(template)


def create_template(db, user_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
    """
    Store a new personal template.

    Raises:
        TemplateError: If any of name, type, language, subject or body is missing
    """
    if any(not str(fields.get(name) or "").strip() for name in REQUIRED_FIELDS):
        raise TemplateError("Missing required fields")

    template = {
        "id": generate_id("tpl"),
        "user_id": user_id,
        "name": fields["name"],
        "description": fields.get("description") or None,
        "type": fields["type"],
        "language": fields["language"],
        "subject": fields["subject"],
        "subject_variants": _variants(fields.get("subject_variants")),
        "body": fields["body"],
    }
    db.insert_template(template)
    logger.info("Created template", extra={"user_id": user_id, "template_id": template["id"]})

    created = serialize_template(template)
    return {
        "success": True,
        "template": {key: created[key] for key in (
            "id", "name", "description", "type", "language", "subject", "subjectVariants", "body"
        )},
    }


def update_template(db, user_id: str, template_id: str, changes: Mapping[str, Any]) -> dict[str, bool]:
    """Update the editable fields present in ``changes`` on one of the user's templates."""
    _owned_template(db, user_id, template_id)
    fields = {key: changes[key] for key in EDITABLE_FIELDS if changes.get(key) is not None}
    if "subject_variants" in fields:
        fields["subject_variants"] = _variants(fields["subject_variants"])
    db.update_template(template_id, fields)
    return {"success": True}


def delete_template(db, user_id: str, template_id: str) -> dict[str, bool]:
    """
    Raises:
        TemplateNotFoundError: If the template does not exist
        GlobalTemplateError: If the template is global
        TemplateAccessError: If it is another user's template
    """
    template = db.get_template(template_id)
    if not template:
        raise TemplateNotFoundError("Template not found")
    if template.get("user_id") is None:
        raise GlobalTemplateError("Cannot delete global templates")
    if template["user_id"] != user_id:
        raise TemplateAccessError("Unauthorized")

    db.delete_template(template_id)
    logger.info("Deleted template", extra={"user_id": user_id, "template_id": template_id})
    return {"success": True}


def load_template_seeds(path: Optional[str] = None) -> list[dict[str, Any]]:
    """
    Read the global template seeds.

    Raises:
        FileNotFoundError: If the seed file does not exist
    """
    seed_path = Path(path) if path else DEFAULT_SEED_PATH
    with open(seed_path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return list(data.get("templates") or [])


def seed_global_templates(db, seeds: list[dict[str, Any]]) -> int:
    """Insert the global templates unless some already exist; returns how many were added."""
    if db.count_global_templates() > 0:
        logger.info("Global templates already seeded")
        return 0

    for seed in seeds:
        db.insert_template(
            {
                "id": generate_id("tpl"),
                "user_id": None,
                "name": seed["name"],
                "description": seed.get("description"),
                "type": seed["type"],
                "language": seed["language"],
                "subject": seed["subject"],
                "subject_variants": _variants(seed.get("subject_variants")),
                "body": seed["body"],
                "is_default": bool(seed.get("is_default", True)),
            }
        )
    logger.info("Seeded global templates", extra={"count": len(seeds)})
    return len(seeds)
