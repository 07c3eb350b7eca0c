"""Contacts service.

Decides which posting emails are real people, how contacts are shown to
free users, syncs posting contacts into each user's CRM and serves the
CRM endpoints.
"""

from .email_quality import get_email_quality_reason, is_direct_contact_email
from .service import (
    ContactError,
    ContactNotFoundError,
    contacts_to_csv,
    create_contact,
    delete_contact,
    list_contacts,
    save_job_contact,
    update_contact,
)
from .upsert import upsert_contact_from_job_for_user
from .visibility import (
    get_contact_visibility,
    is_job_sync_unlocked,
    mask_contact_email,
    with_job_sync_unlock,
)

__all__ = [
    "ContactError",
    "ContactNotFoundError",
    "contacts_to_csv",
    "create_contact",
    "delete_contact",
    "list_contacts",
    "save_job_contact",
    "update_contact",
    "get_email_quality_reason",
    "is_direct_contact_email",
    "upsert_contact_from_job_for_user",
    "get_contact_visibility",
    "is_job_sync_unlocked",
    "mask_contact_email",
    "with_job_sync_unlock",
]
__version__ = "0.1.0"
