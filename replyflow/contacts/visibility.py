"""Contact visibility rules for free and Pro users.

Contacts created by job sync stay masked for free users until the user
unlocks them (by revealing the job or drafting outreach). Manually added
contacts and everything a Pro user sees are always shown in full.
"""

from collections.abc import Mapping
from typing import Any, Optional

from replyflow.common.utils import to_iso, utc_now

JOB_SYNC_SOURCE = "job_sync"


def _unlock_fields(custom_fields: Optional[Mapping[str, Any]]) -> dict[str, Optional[str]]:
    if not isinstance(custom_fields, Mapping):
        return {}
    unlocked_at = custom_fields.get("jobSyncUnlockedAt")
    unlock_source = custom_fields.get("jobSyncUnlockSource")
    return {
        "jobSyncUnlockedAt": unlocked_at if isinstance(unlocked_at, str) else None,
        "jobSyncUnlockSource": unlock_source if isinstance(unlock_source, str) else None,
    }


def is_job_sync_contact(source: Optional[str]) -> bool:
    return source == JOB_SYNC_SOURCE


def is_job_sync_unlocked(custom_fields: Optional[Mapping[str, Any]]) -> bool:
    return bool(_unlock_fields(custom_fields).get("jobSyncUnlockedAt"))


def get_contact_visibility(
    plan: str, source: Optional[str], custom_fields: Optional[Mapping[str, Any]]
) -> str:
    """Return ``"full"`` or ``"masked"``."""
    if plan == "pro":
        return "full"
    if not is_job_sync_contact(source):
        return "full"
    return "full" if is_job_sync_unlocked(custom_fields) else "masked"


def mask_contact_email(email: Optional[str]) -> Optional[str]:
    """
    Mask an email for display, keeping the first character of each part.

    Examples:
        >>> mask_contact_email("jane@example.com")
        'j***@e***.com'
        >>> mask_contact_email("@example.com")
        '***'
        >>> mask_contact_email("jane@localhost")
        'j***@***'
    """
    if not email:
        return None

    at = email.find("@")
    if at <= 0:
        return "***"

    local = email[:at]
    domain = email[at + 1:]
    masked_local = f"{local[0]}***"

    dot = domain.find(".")
    if dot <= 0:
        return f"{masked_local}@***"

    return f"{masked_local}@{domain[0]}***{domain[dot:]}"


def with_job_sync_unlock(
    custom_fields: Optional[Mapping[str, Any]], unlock_source: str
) -> dict[str, Any]:
    """Return custom fields marked as unlocked now by ``unlock_source``."""
    result = dict(custom_fields) if isinstance(custom_fields, Mapping) else {}
    result.update(
        {
            "jobSyncUnlockedAt": to_iso(utc_now()),
            "jobSyncUnlockSource": unlock_source,
        }
    )
    return result
