"""Create or enrich a CRM contact from a job posting's contact email."""

import logging
from typing import Optional

from replyflow.common.utils import generate_id

from .visibility import JOB_SYNC_SOURCE, with_job_sync_unlock

logger = logging.getLogger(__name__)


def upsert_contact_from_job_for_user(
    db,
    user_id: str,
    email: str,
    company: Optional[str] = None,
    position: Optional[str] = None,
    source_ref: Optional[str] = None,
    unlock_source: Optional[str] = None,
) -> tuple[str, bool]:
    """
    Insert a job-sync contact or fill gaps on an existing one.

    Existing contacts keep their company, position and source_ref; only empty
    values are filled. When ``unlock_source`` is given, the contact is marked
    as unlocked for free-plan visibility.

    Args:
        db: ContactsDB (or compatible) instance
        user_id: Owner of the contact
        email: Contact email (stored lower-cased)
        company: Company name from the posting
        position: Role from the posting
        source_ref: Posting URL
        unlock_source: "reveal" or "outreach" when the user unlocked the job

    Returns:
        Tuple of (contact_id, created)
    """
    normalized_email = email.strip().lower()
    existing = db.find_contact_by_email(user_id, normalized_email)

    if existing:
        fields = {
            "company": existing.get("company") or company or None,
            "position": existing.get("position") or position or None,
            "source_ref": existing.get("source_ref") or source_ref or None,
        }
        if unlock_source:
            fields["custom_fields"] = with_job_sync_unlock(
                existing.get("custom_fields"), unlock_source
            )
        db.update_contact(existing["id"], fields)
        return existing["id"], False

    contact_id = generate_id("ct")
    db.insert_contact(
        {
            "id": contact_id,
            "user_id": user_id,
            "email": normalized_email,
            "company": company or None,
            "position": position or None,
            "source": JOB_SYNC_SOURCE,
            "source_ref": source_ref or None,
            "status": "lead",
            "custom_fields": with_job_sync_unlock(None, unlock_source) if unlock_source else {},
        }
    )
    logger.info(
        "Created job sync contact",
        extra={"user_id": user_id, "contact_id": contact_id, "unlock_source": unlock_source},
    )
    return contact_id, True
