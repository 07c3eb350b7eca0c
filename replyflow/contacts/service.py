"""
Contacts CRM operations for the HTTP API.

Listing (JSON or CSV), manual creation, saving a job's recruiter as a lead,
editing and deletion. Job-sync contacts stay masked for free users until
they are unlocked (see :mod:`replyflow.contacts.visibility`).
"""

import logging
import re
from collections.abc import Mapping
from typing import Any, Optional

from replyflow.common.utils import generate_id, to_iso
from replyflow.plan.service import get_effective_plan

from .upsert import upsert_contact_from_job_for_user
from .visibility import get_contact_visibility, mask_contact_email

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
EDITABLE_FIELDS = ("name", "company", "position", "status", "notes")
CSV_COLUMNS = ("email", "name", "company", "position", "status", "source", "source_ref", "updated_at")


class ContactError(Exception):
    status_code = 400


class ContactNotFoundError(ContactError):
    status_code = 404


def _csv_value(value: Any) -> str:
    if value is None or value == "":
        return ""
    text = value if isinstance(value, str) else str(value)
    return '"' + text.replace('"', '""') + '"'


def serialize_contact(row: Mapping[str, Any], plan: str) -> dict[str, Any]:
    visibility = get_contact_visibility(plan, row.get("source"), row.get("custom_fields"))
    email = row.get("email")
    return {
        "id": row["id"],
        "email": email if visibility == "full" else mask_contact_email(email),
        "name": row.get("name"),
        "company": row.get("company"),
        "position": row.get("position"),
        "source": row.get("source"),
        "sourceRef": row.get("source_ref"),
        "status": row.get("status"),
        "notes": row.get("notes"),
        "visibility": visibility,
        "lastContactedAt": to_iso(row.get("last_contacted_at")),
        "createdAt": to_iso(row.get("created_at")),
        "updatedAt": to_iso(row.get("updated_at")),
    }


def list_contacts(db, plan_db, user_id: str, status: Optional[str] = None) -> list[dict[str, Any]]:
    """The user's contacts, most recently updated first; ``status="all"`` means no filter."""
    plan = get_effective_plan(plan_db, user_id)
    rows = db.list_contacts(user_id, None if status in (None, "", "all") else status)
    return [serialize_contact(row, plan) for row in rows]


def contacts_to_csv(contacts: list[dict[str, Any]]) -> str:
    """
    Render serialized contacts as CSV.

    Non-empty values are always double-quoted (inner quotes doubled) and
    empty values are left blank.
    """
    lines = [",".join(CSV_COLUMNS)]
    for contact in contacts:
        lines.append(
            ",".join(
                _csv_value(value)
                for value in (
                    contact.get("email"),
                    contact.get("name"),
                    contact.get("company"),
                    contact.get("position"),
                    contact.get("status"),
                    contact.get("source"),
                    contact.get("sourceRef"),
                    contact.get("updatedAt"),
                )
            )
        )
    return "\n".join(lines)


def save_job_contact(db, outreach_db, plan_db, user_id: str, job_id: str) -> dict[str, Any]:
    """
    Save a job's recruiter email as a lead.

    Free users must have revealed the job first.

    Raises:
        ContactNotFoundError: If the job does not exist
        ContactError: If the job has no email or is not revealed
    """
    job = outreach_db.get_job(job_id)
    if not job:
        raise ContactNotFoundError("Job not found")
    if not job.get("contact_email"):
        raise ContactError("Job has no recruiter email")

    is_pro = get_effective_plan(plan_db, user_id) == "pro"
    if not is_pro and not outreach_db.has_reveal(user_id, job_id):
        raise ContactError("Reveal contact before saving lead")

    contact_id, created = upsert_contact_from_job_for_user(
        db,
        user_id,
        job["contact_email"],
        company=job.get("company"),
        position=job.get("role"),
        source_ref=job.get("issue_url"),
    )
    return {"success": True, "id": contact_id, "created": created}


def create_contact(db, user_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
    """
    Add a manual contact; an existing contact with the same email is returned as is.

    Raises:
        ContactError: If the email is missing or malformed
    """
    email = str(fields.get("email") or "").strip().lower()
    if not email or not EMAIL_PATTERN.match(email):
        raise ContactError("Valid email required")

    existing = db.find_contact_by_email(user_id, email)
    if existing:
        return {"success": True, "id": existing["id"], "created": False}

    contact_id = generate_id("ct")
    db.insert_contact(
        {
            "id": contact_id,
            "user_id": user_id,
            "email": email,
            "name": fields.get("name") or None,
            "company": fields.get("company") or None,
            "position": fields.get("position") or None,
            "source": "manual",
            "source_ref": fields.get("source_ref") or None,
            "status": fields.get("status") or "lead",
            "notes": fields.get("notes") or None,
        }
    )
    logger.info("Created manual contact", extra={"user_id": user_id, "contact_id": contact_id})
    return {"success": True, "id": contact_id, "created": True}


def update_contact(db, user_id: str, contact_id: str, changes: Mapping[str, Any]) -> dict[str, bool]:
    """
    Update the editable fields present in ``changes``; None keeps the stored value.

    Raises:
        ContactNotFoundError: If the contact does not belong to the user
    """
    if not db.get_contact(user_id, contact_id):
        raise ContactNotFoundError("Contact not found")

    fields = {key: changes[key] for key in EDITABLE_FIELDS if changes.get(key) is not None}
    db.update_contact(contact_id, fields)
    return {"success": True}


def delete_contact(db, user_id: str, contact_id: str) -> dict[str, bool]:
    db.delete_contact(user_id, contact_id)
    return {"success": True}
