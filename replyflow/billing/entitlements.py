"""
Provider status mapping and entitlement resolution.

Asaas reports subscription and payment states in its own vocabulary; these
helpers fold them into the five subscription states and five payment states
ReplyFlow stores, and decide whether a subscription grants Pro right now.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from replyflow.common.utils import parse_iso, utc_now

SUBSCRIPTION_STATUSES = ("pending", "active", "past_due", "canceled", "expired")
PAYMENT_STATUSES = ("pending", "paid", "overdue", "canceled", "refunded")

_SUBSCRIPTION_STATUS_MAP = {
    "ACTIVE": "active",
    "ACTIVATED": "active",
    "OVERDUE": "past_due",
    "PAST_DUE": "past_due",
    "INACTIVE": "past_due",
    "CANCELED": "canceled",
    "CANCELLED": "canceled",
    "DELETED": "canceled",
    "EXPIRED": "expired",
}

_PAYMENT_STATUS_MAP = {
    "RECEIVED": "paid",
    "CONFIRMED": "paid",
    "RECEIVED_IN_CASH": "paid",
    "OVERDUE": "overdue",
    "DELETED": "canceled",
    "CANCELED": "canceled",
    "CANCELLED": "canceled",
    "REFUNDED": "refunded",
    "PARTIALLY_REFUNDED": "refunded",
}

_EVENT_SUBSCRIPTION_STATUS = {
    "PAYMENT_CONFIRMED": "active",
    "PAYMENT_RECEIVED": "active",
    "PAYMENT_OVERDUE": "past_due",
    "PAYMENT_DELETED": "canceled",
}


@dataclass(frozen=True)
class Entitlement:
    plan: str
    plan_expires_at: Optional[datetime] = None


FREE_ENTITLEMENT = Entitlement(plan="free")


def map_subscription_status(status: Optional[str]) -> str:
    """Map a provider subscription status (any case) to a stored status; unknown -> pending."""
    return _SUBSCRIPTION_STATUS_MAP.get((status or "").strip().upper(), "pending")


def map_payment_status(status: Optional[str]) -> str:
    return _PAYMENT_STATUS_MAP.get((status or "").strip().upper(), "pending")


def subscription_status_from_event(event_type: str) -> Optional[str]:
    return _EVENT_SUBSCRIPTION_STATUS.get((event_type or "").strip().upper())


def parse_period_end(value: Any) -> Optional[datetime]:
    """
    Parse a period end sent by the provider.

    Date-only values (``YYYY-MM-DD``) mean the end of that day in UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, str) and len(value) <= 10:
        try:
            day = datetime.strptime(value, "%Y-%m-%d")
        except ValueError:
            return None
        return day.replace(hour=23, minute=59, second=59, microsecond=999000, tzinfo=timezone.utc)
    return parse_iso(value)


def resolve_entitlement(
    status: str,
    current_period_end: Any,
    grace_days: int,
    now: Optional[datetime] = None,
) -> Entitlement:
    """
    Decide whether a subscription in ``status`` grants Pro at ``now``.

    - active: Pro, expiring at the period end (or never when unknown)
    - canceled: Pro until the period end, then free
    - past_due: Pro until period end + grace days, then free
    - anything else: free
    """
    now = now or utc_now()
    period_end = parse_period_end(current_period_end)

    if status == "active":
        return Entitlement(plan="pro", plan_expires_at=period_end)

    if status == "canceled":
        if period_end and period_end >= now:
            return Entitlement(plan="pro", plan_expires_at=period_end)
        return FREE_ENTITLEMENT

    if status == "past_due":
        if not period_end:
            return FREE_ENTITLEMENT
        grace_end = period_end + timedelta(days=grace_days)
        if grace_end >= now:
            return Entitlement(plan="pro", plan_expires_at=grace_end)
        return FREE_ENTITLEMENT

    return FREE_ENTITLEMENT
