"""
Contact email quality filter.

Job postings often list mailboxes nobody reads (noreply, support, generic
careers inboxes) or GitHub relay addresses. Only addresses that pass every
check below are treated as a direct contact and synced into the CRM.
"""

import re
from typing import Optional

BLOCKED_LOCAL_PARTS = [
    "noreply",
    "no-reply",
    "do-not-reply",
    "donotreply",
    "support",
    "suporte",
    "help",
    "helpdesk",
    "admin",
    "info",
    "contact",
    "contato",
    "jobs",
    "careers",
    "career",
    "vagas",
    "talent",
    "talents",
    "recruiting",
    "recruitment",
    "rh",
    "atendimento",
    "faleconosco",
]

BLOCKED_DOMAIN_PARTS = [
    "noreply",
    "no-reply",
    "notifications",
    "notification",
    "support",
    "help",
    "donotreply",
]

EMAIL_FORMAT_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
GITHUB_RELAY_PATTERN = re.compile(r"@github\.com$", re.IGNORECASE)


def get_email_quality_reason(email: Optional[str]) -> Optional[str]:
    """
    Classify why an email is not a direct contact.

    Checks run in order: empty, invalid_format, accommodation, noreply,
    generic_local_part, generic_domain, blocked_pattern.

    Returns:
        The first failing reason, or None when the address is usable.
    """
    normalized = (email or "").strip().lower()
    if not normalized:
        return "empty"

    if not EMAIL_FORMAT_PATTERN.match(normalized):
        return "invalid_format"

    local_part, _, domain = normalized.partition("@")
    if not local_part or not domain:
        return "invalid_format"

    if "accommodation" in local_part or "accommodation" in domain:
        return "accommodation"

    if "noreply" in local_part or "no-reply" in local_part:
        return "noreply"

    if any(part in local_part for part in BLOCKED_LOCAL_PARTS):
        return "generic_local_part"

    if any(part in domain for part in BLOCKED_DOMAIN_PARTS):
        return "generic_domain"

    if GITHUB_RELAY_PATTERN.search(normalized):
        return "blocked_pattern"

    return None


def is_direct_contact_email(email: Optional[str]) -> bool:
    return get_email_quality_reason(email) is None
