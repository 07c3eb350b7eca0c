"""
Outreach

Contact reveals, cold email drafts, delivery over SMTP and the outbound
email log.
"""

from .base import DeliveryChannel, DeliveryError, OutboundMessage
from .email_generator import GeneratedEmail, generate_cold_email, generate_follow_up_email
from .exceptions import (
    InvalidRequestError,
    NotFoundError,
    OutreachError,
    SendFailedError,
    UpgradeRequiredError,
)
from .reveal import reveal_job_contact
from .service import (
    OUTREACH_STATUSES,
    create_outreach_draft,
    list_email_history,
    list_outreach,
    send_outreach_email,
    set_job_outreach_status,
    update_outreach,
)
from .smtp import SmtpChannel, get_delivery_channel

__all__ = [
    "DeliveryChannel",
    "DeliveryError",
    "OutboundMessage",
    "GeneratedEmail",
    "generate_cold_email",
    "generate_follow_up_email",
    "InvalidRequestError",
    "NotFoundError",
    "OutreachError",
    "SendFailedError",
    "UpgradeRequiredError",
    "reveal_job_contact",
    "OUTREACH_STATUSES",
    "create_outreach_draft",
    "list_email_history",
    "list_outreach",
    "send_outreach_email",
    "set_job_outreach_status",
    "update_outreach",
    "SmtpChannel",
    "get_delivery_channel",
]
