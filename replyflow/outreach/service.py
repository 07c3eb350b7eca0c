"""
Outreach Service

Drafting, editing, sending and listing outreach emails for job postings.
Quota checks go through the plan service; delivery goes through a
:class:`~replyflow.outreach.base.DeliveryChannel`.
"""

import logging
import re
from collections.abc import Mapping
from typing import Any, Optional

from replyflow.common.utils import generate_id, to_iso, utc_now
from replyflow.plan.limits import UNLIMITED, get_limits_for_plan
from replyflow.plan.service import assert_within_plan, get_effective_plan, get_or_create_profile

from .base import DeliveryChannel, DeliveryError, OutboundMessage, text_to_html
from .email_generator import LANGUAGES, generate_cold_email
from .exceptions import InvalidRequestError, NotFoundError, SendFailedError, UpgradeRequiredError
from .reveal import sync_job_contact

logger = logging.getLogger(__name__)

OUTREACH_STATUSES = (
    "none",
    "interested",
    "email_drafted",
    "email_sent",
    "followed_up",
    "replied",
    "interviewing",
    "rejected",
    "accepted",
)

STATUS_TIMESTAMPS = {
    "email_sent": "sent_at",
    "followed_up": "followed_up_at",
    "replied": "replied_at",
}

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MASKED = "***"


def _record_to_dict(record: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": record["id"],
        "jobId": record["job_id"],
        "status": record.get("status"),
        "emailSubject": record.get("email_subject"),
        "emailBody": record.get("email_body"),
        "recipientEmail": record.get("recipient_email"),
        "sentAt": to_iso(record.get("sent_at")),
        "followedUpAt": to_iso(record.get("followed_up_at")),
        "repliedAt": to_iso(record.get("replied_at")),
        "notes": record.get("notes"),
        "createdAt": to_iso(record.get("created_at")),
        "updatedAt": to_iso(record.get("updated_at")),
    }


def _is_revealed(db, plan: str, user_id: str, job_id: str) -> bool:
    return plan == "pro" or db.has_reveal(user_id, job_id)


def create_outreach_draft(
    db, plan_db, contacts_db, user_id: str, job_id: str, language: str = "pt-BR"
) -> dict[str, Any]:
    """
    Create the outreach record and cold email draft for a job.

    An existing record for the same job is returned unchanged. Free users
    who have not revealed the job get a draft without a recipient.

    Raises:
        InvalidRequestError: If the language is unsupported
        NotFoundError: If the job does not exist
        UpgradeRequiredError: If the free draft quota is used up
    """
    if language not in LANGUAGES:
        raise InvalidRequestError(f"Unsupported language: {language}")

    job = db.get_job(job_id)
    if not job:
        raise NotFoundError("Job not found")

    existing = db.get_outreach_for_job(user_id, job_id)
    if existing:
        return {
            "success": True,
            "outreach": {
                "id": existing["id"],
                "email": {
                    "subject": existing.get("email_subject"),
                    "body": existing.get("email_body"),
                },
            },
            "existing": True,
        }

    sync_job_contact(contacts_db, user_id, job, unlock_source="outreach")

    check = assert_within_plan(plan_db, user_id, "drafts")
    if not check.ok:
        raise UpgradeRequiredError(check.feature, check.limit)

    profile = get_or_create_profile(plan_db, user_id)
    plan = get_effective_plan(plan_db, user_id)

    contact_email = job.get("contact_email")
    if contact_email and not _is_revealed(db, plan, user_id, job_id):
        contact_email = None

    email = generate_cold_email({**job, "contact_email": contact_email}, profile, language)

    outreach_id = generate_id("or")
    db.insert_outreach(
        {
            "id": outreach_id,
            "user_id": user_id,
            "job_id": job_id,
            "status": "email_drafted",
            "email_subject": email.subject,
            "email_body": email.body,
            "recipient_email": email.to,
        }
    )
    logger.info(
        "Created outreach draft",
        extra={"user_id": user_id, "job_id": job_id, "outreach_id": outreach_id},
    )
    return {"success": True, "outreach": {"id": outreach_id, "email": email.to_dict()}}


def update_outreach(db, user_id: str, outreach_id: str, changes: Mapping[str, Any]) -> dict[str, bool]:
    """
    Update status, notes, subject or body of an outreach record.

    Only keys present in ``changes`` are touched. Moving to email_sent,
    followed_up or replied stamps the matching timestamp. Blank subject or
    body is stored as NULL.

    Raises:
        InvalidRequestError: If the status is unknown
        NotFoundError: If the record does not belong to the user
    """
    existing = db.get_outreach(user_id, outreach_id)
    if not existing:
        raise NotFoundError("Outreach record not found")

    now = utc_now()
    fields: dict[str, Any] = {}

    status = changes.get("status")
    if status:
        if status not in OUTREACH_STATUSES:
            raise InvalidRequestError(f"Invalid status: {status}")
        fields["status"] = status
        if status in STATUS_TIMESTAMPS:
            fields[STATUS_TIMESTAMPS[status]] = now
    if "notes" in changes:
        fields["notes"] = changes["notes"]
    if "email_subject" in changes:
        fields["email_subject"] = (changes["email_subject"] or "").strip() or None
    if "email_body" in changes:
        fields["email_body"] = (changes["email_body"] or "").strip() or None

    db.update_outreach(outreach_id, fields)
    return {"success": True}


def set_job_outreach_status(db, user_id: str, job_id: str, status: str) -> dict[str, bool]:
    """
    Move a job through the user's pipeline from the job board.

    Creates the outreach record when the job has none yet.

    Raises:
        InvalidRequestError: If the status is unknown
        NotFoundError: If the job does not exist
    """
    if status not in OUTREACH_STATUSES:
        raise InvalidRequestError(f"Invalid status: {status}")
    if not db.get_job(job_id):
        raise NotFoundError("Job not found")

    existing = db.get_outreach_for_job(user_id, job_id)
    if existing:
        db.update_outreach(existing["id"], {"status": status})
        return {"success": True}

    outreach_id = generate_id("or")
    db.insert_outreach({"id": outreach_id, "user_id": user_id, "job_id": job_id, "status": status})
    logger.info(
        "Added job to pipeline",
        extra={"user_id": user_id, "job_id": job_id, "outreach_id": outreach_id, "status": status},
    )
    return {"success": True}


def send_outreach_email(
    db,
    plan_db,
    contacts_db,
    channel: Optional[DeliveryChannel],
    user_id: str,
    outreach_id: str,
    to_email_override: Optional[str] = None,
    email_subject: Optional[str] = None,
    email_body: Optional[str] = None,
) -> dict[str, Any]:
    """
    Send an outreach draft and record the attempt.

    Steps: resolve subject/body and recipient, consume a ``sends`` unit,
    log the email as queued, deliver it, then mark the email sent (or
    failed) and the record email_sent.

    Raises:
        NotFoundError: If the record does not belong to the user
        InvalidRequestError: If there is no draft, recipient or channel
        UpgradeRequiredError: If the free send quota is used up
        SendFailedError: If delivery fails
    """
    record = db.get_outreach(user_id, outreach_id)
    if not record:
        raise NotFoundError("Outreach record not found")
    job = db.get_job(record["job_id"]) or {}

    subject = email_subject if email_subject is not None else record.get("email_subject")
    body_text = email_body if email_body is not None else record.get("email_body")
    if not subject or not body_text:
        raise InvalidRequestError("No email draft to send")

    plan = get_effective_plan(plan_db, user_id)
    to_email = to_email_override or None
    if not to_email:
        contact_email = job.get("contact_email")
        if contact_email and not _is_revealed(db, plan, user_id, record["job_id"]):
            raise InvalidRequestError("Reveal contact before sending")
        to_email = contact_email

    if not to_email:
        raise InvalidRequestError("No recipient email provided")
    if not EMAIL_PATTERN.match(to_email):
        raise InvalidRequestError("Invalid email address format")
    if channel is None:
        raise InvalidRequestError("No email delivery channel configured")

    check = assert_within_plan(plan_db, user_id, "sends")
    if not check.ok:
        raise UpgradeRequiredError(check.feature, check.limit)

    profile = get_or_create_profile(plan_db, user_id) or {}
    reply_to = profile.get("email") or channel.sender

    email_id = db.insert_outbound_email(
        {
            "user_id": user_id,
            "outreach_id": outreach_id,
            "recipient_email": to_email,
            "sender_email": channel.sender,
            "reply_to": reply_to,
            "subject": subject,
            "body_text": body_text,
            "status": "queued",
            "provider": channel.name,
        }
    )

    try:
        message_id = channel.send(
            OutboundMessage(
                to=to_email,
                subject=subject,
                text=body_text,
                reply_to=reply_to,
                html=text_to_html(body_text),
                metadata={"outreach_id": outreach_id},
            )
        )
    except DeliveryError as e:
        logger.warning(
            f"Outreach email delivery failed: {e}",
            extra={"user_id": user_id, "outreach_id": outreach_id, "error_code": e.code},
        )
        db.update_outbound_email(
            email_id,
            {
                "status": "failed",
                "failed_at": utc_now(),
                "error_code": e.code,
                "error_message": str(e),
            },
        )
        raise SendFailedError(str(e), e.code, email_id) from e

    now = utc_now()
    db.update_outbound_email(
        email_id, {"status": "sent", "provider_message_id": message_id, "sent_at": now}
    )
    db.update_outreach(
        outreach_id, {"status": "email_sent", "sent_at": now, "recipient_email": to_email}
    )
    contacts_db.touch_last_contacted(user_id, to_email)

    return {"success": True, "messageId": message_id, "sentTo": to_email, "emailId": email_id}


def list_outreach(db, plan_db, user_id: str, status: Optional[str] = None) -> list[dict[str, Any]]:
    """
    List the user's outreach records with their jobs.

    Contact fields of jobs a free user has not revealed are masked as "***".
    """
    plan = get_effective_plan(plan_db, user_id)
    revealed_ids = set() if plan == "pro" else db.list_revealed_job_ids(user_id)

    records = []
    for row in db.list_outreach_with_jobs(user_id, status):
        job = dict(row.get("job") or {})
        if plan != "pro" and job.get("id") not in revealed_ids:
            for key in ("contact_email", "contact_linkedin", "contact_whatsapp"):
                if job.get(key):
                    job[key] = MASKED
        item = _record_to_dict(row)
        item["job"] = job
        records.append(item)
    return records


def list_email_history(
    db, plan_db, user_id: str, status: Optional[str] = None, limit: int = 50, offset: int = 0
) -> dict[str, Any]:
    """Outbound email log, newest first; free users only see their latest items."""
    plan = get_effective_plan(plan_db, user_id)
    history_items = get_limits_for_plan(plan).history_items

    emails = db.list_outbound_emails(user_id, status)
    if history_items != UNLIMITED:
        emails = emails[:history_items]
        limit = min(limit, history_items)

    page = emails[offset:offset + limit]
    return {
        "emails": [
            {
                "id": email["id"],
                "outreachId": email.get("outreach_id"),
                "recipientEmail": email.get("recipient_email"),
                "senderEmail": email.get("sender_email"),
                "subject": email.get("subject"),
                "status": email.get("status"),
                "provider": email.get("provider"),
                "providerMessageId": email.get("provider_message_id"),
                "sentAt": to_iso(email.get("sent_at")),
                "failedAt": to_iso(email.get("failed_at")),
                "errorCode": email.get("error_code"),
                "errorMessage": email.get("error_message"),
                "createdAt": to_iso(email.get("created_at")),
            }
            for email in page
        ],
        "total": len(emails),
        "limit": limit,
        "offset": offset,
    }
