"""Contact reveal: unlocks a posting's contact details for a user."""

import logging
from typing import Any

from replyflow.contacts.email_quality import is_direct_contact_email
from replyflow.contacts.upsert import upsert_contact_from_job_for_user
from replyflow.plan.service import assert_within_plan

from .exceptions import NotFoundError, UpgradeRequiredError

logger = logging.getLogger(__name__)


def sync_job_contact(contacts_db, user_id: str, job: dict[str, Any], unlock_source: str) -> None:
    """Upsert the job's contact email into the user's CRM when it is a real person."""
    email = job.get("contact_email")
    if not email or not is_direct_contact_email(email):
        return
    upsert_contact_from_job_for_user(
        contacts_db,
        user_id,
        email,
        company=job.get("company"),
        position=job.get("role"),
        source_ref=job.get("issue_url"),
        unlock_source=unlock_source,
    )


def reveal_job_contact(db, plan_db, contacts_db, user_id: str, job_id: str) -> dict[str, Any]:
    """
    Reveal a job's contact details.

    The first reveal of a job consumes one ``reveals`` unit; repeated
    reveals are free.

    Args:
        db: OutreachDB (or compatible) instance
        plan_db: PlanDB (or compatible) instance
        contacts_db: ContactsDB (or compatible) instance
        user_id: Requesting user
        job_id: Job to reveal

    Returns:
        Dict with success, revealed and contact (email, linkedin, whatsapp)

    Raises:
        NotFoundError: If the job does not exist
        UpgradeRequiredError: If the free reveal quota is used up
    """
    job = db.get_job(job_id)
    if not job:
        raise NotFoundError("Job not found")

    if not db.has_reveal(user_id, job_id):
        check = assert_within_plan(plan_db, user_id, "reveals")
        if not check.ok:
            raise UpgradeRequiredError(check.feature, check.limit)
        db.insert_reveal(user_id, job_id)
        logger.info("Revealed job contact", extra={"user_id": user_id, "job_id": job_id})

    sync_job_contact(contacts_db, user_id, job, unlock_source="reveal")

    return {
        "success": True,
        "revealed": True,
        "contact": {
            "email": job.get("contact_email"),
            "linkedin": job.get("contact_linkedin"),
            "whatsapp": job.get("contact_whatsapp"),
        },
    }
