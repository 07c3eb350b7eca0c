"""
Billing Service

Keeps the local billing tables in step with the payment provider and
projects the resulting entitlement into ``user_plan``:

- Pro checkout creation (reusing a pending checkout when one exists)
- Billing state for the settings page
- Subscription cancellation
- Webhook ingestion with idempotency by event id and payload fingerprint
- Provider-driven reconciliation of one subscription
"""

import json
import logging
import math
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Optional

from replyflow.common.utils import generate_id, parse_iso, round_half_up, to_iso, utc_now

from .config import BillingConfig
from .entitlements import (
    Entitlement,
    map_payment_status,
    map_subscription_status,
    resolve_entitlement,
    subscription_status_from_event,
)
from .provider import (
    BillingProvider,
    BillingUser,
    PaymentSnapshot,
    SubscriptionSnapshot,
    checkout_url_for,
)

logger = logging.getLogger(__name__)

PLAN_KEY = "pro_monthly"
CURRENCY = "BRL"


class BillingError(Exception):
    """Raised when a billing operation cannot proceed."""

    pass


class SubscriptionAlreadyActiveError(BillingError):
    """Raised when a user with a Pro entitlement asks for a new checkout."""

    pass


def coerce_number(value: Any, fallback: float = 0) -> float:
    """Numeric value of an Asaas amount field; NaN, infinities and junk give ``fallback``."""
    if isinstance(value, bool):
        return fallback
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value)
        except ValueError:
            return fallback
    else:
        return fallback
    return number if math.isfinite(number) else fallback


def reais_to_cents(value: Any, fallback: float = 0) -> int:
    return round_half_up(coerce_number(value, fallback) * 100)


def extract_provider_customer_id(payload: Mapping[str, Any]) -> Optional[str]:
    direct = payload.get("customer")
    if isinstance(direct, str) and direct:
        return direct
    for key in ("payment", "subscription"):
        nested = payload.get(key)
        if isinstance(nested, Mapping) and isinstance(nested.get("customer"), str):
            return nested["customer"]
    return None


def extract_provider_subscription_id(payload: Mapping[str, Any]) -> Optional[str]:
    subscription = payload.get("subscription")
    if isinstance(subscription, str) and subscription:
        return subscription
    if isinstance(subscription, Mapping) and isinstance(subscription.get("id"), str):
        return subscription["id"]
    payment = payload.get("payment")
    if isinstance(payment, Mapping) and isinstance(payment.get("subscription"), str):
        return payment["subscription"]
    return None


def _timestamp(value: Any) -> float:
    parsed = parse_iso(value)
    return parsed.timestamp() if parsed else 0.0


class BillingService:
    """
    Billing workflows over a BillingDB-compatible ``db`` and a provider.

    Args:
        db: BillingDB (or compatible) instance
        provider: BillingProvider implementation
        config: Billing configuration
    """

    def __init__(self, db, provider: BillingProvider, config: BillingConfig):
        self.db = db
        self.provider = provider
        self.config = config

    # Upserts

    def upsert_subscription(
        self,
        user_id: str,
        provider_subscription_id: Optional[str],
        provider_customer_id: Optional[str],
        provider_checkout_id: Optional[str],
        status: Optional[str],
        raw_payload: Mapping[str, Any],
        billing_type: Optional[str] = None,
        next_due_date: Optional[str] = None,
        current_period_end: Optional[str] = None,
        cancel_at_period_end: bool = False,
        cancelled_at: Optional[datetime] = None,
    ) -> None:
        self.db.upsert_subscription(
            {
                "user_id": user_id,
                "provider": self.provider.name,
                "provider_subscription_id": provider_subscription_id,
                "provider_customer_id": provider_customer_id,
                "provider_checkout_id": provider_checkout_id,
                "plan_key": PLAN_KEY,
                "price_cents": self.config.pro_monthly_cents,
                "currency": CURRENCY,
                "status": map_subscription_status(status),
                "billing_type": billing_type or "CREDIT_CARD",
                "next_due_date": next_due_date,
                "current_period_end": current_period_end or next_due_date,
                "cancel_at_period_end": cancel_at_period_end,
                "cancelled_at": cancelled_at,
                "raw_payload": dict(raw_payload),
            }
        )

    def upsert_payment(
        self,
        user_id: str,
        payment: PaymentSnapshot,
        provider_subscription_id: Optional[str],
        raw_payload: Mapping[str, Any],
    ) -> None:
        self.db.upsert_payment(
            {
                "user_id": user_id,
                "provider": self.provider.name,
                "provider_payment_id": payment.provider_payment_id,
                "provider_subscription_id": provider_subscription_id,
                "status": map_payment_status(payment.status),
                "amount_cents": reais_to_cents(payment.value),
                "currency": CURRENCY,
                "due_date": payment.due_date,
                "paid_at": payment.payment_date,
                "invoice_url": payment.invoice_url,
                "payment_link": payment.bank_slip_url,
                "raw_payload": dict(raw_payload),
            }
        )

    # Entitlement

    def get_effective_subscription(
        self, user_id: str, now: Optional[datetime] = None
    ) -> Optional[tuple[dict[str, Any], Entitlement]]:
        """
        Pick the subscription that decides the user's entitlement.

        Ranking: subscriptions granting Pro first, then the latest expiry
        (no expiry ranks highest), then the most recently updated.
        """
        subscriptions = self.db.list_subscriptions(user_id)
        if not subscriptions:
            return None

        def rank(item: tuple[dict[str, Any], Entitlement]) -> tuple[int, float, float]:
            subscription, entitlement = item
            is_pro = entitlement.plan == "pro"
            if not is_pro:
                expires_score = 0.0
            elif entitlement.plan_expires_at is None:
                expires_score = float("inf")
            else:
                expires_score = entitlement.plan_expires_at.timestamp()
            return (1 if is_pro else 0, expires_score, _timestamp(subscription.get("updated_at")))

        resolved = [
            (
                subscription,
                resolve_entitlement(
                    subscription.get("status") or "pending",
                    subscription.get("current_period_end"),
                    self.config.grace_days,
                    now,
                ),
            )
            for subscription in subscriptions
        ]
        return max(resolved, key=rank)

    def apply_entitlement(self, user_id: str) -> Optional[Entitlement]:
        effective = self.get_effective_subscription(user_id)
        if not effective:
            self.db.insert_free_plan_if_missing(user_id)
            return None

        _, entitlement = effective
        self.db.project_entitlement(user_id, entitlement.plan, entitlement.plan_expires_at)
        logger.info(
            "Projected billing entitlement",
            extra={"user_id": user_id, "plan": entitlement.plan},
        )
        return entitlement

    # Checkout, state, cancel

    def create_pro_checkout(self, user_id: str) -> dict[str, str]:
        """
        Start (or resume) a Pro checkout.

        Returns:
            Dict with checkoutUrl and providerCheckoutId

        Raises:
            SubscriptionAlreadyActiveError: If the user already has Pro
            BillingError: If the user does not exist
        """
        user = self.db.get_user(user_id)
        if not user:
            raise BillingError("User not found for billing")

        effective = self.get_effective_subscription(user_id)
        if effective and effective[1].plan == "pro":
            raise SubscriptionAlreadyActiveError("User already has an active entitlement")

        pending = self.db.get_latest_subscription(user_id, ["pending"])
        if pending and pending.get("provider_checkout_id"):
            checkout_id = pending["provider_checkout_id"]
            return {
                "checkoutUrl": checkout_url_for(self.config.asaas_checkout_base_url, checkout_id),
                "providerCheckoutId": checkout_id,
            }

        name = user.get("name") or user["email"]
        checkout = self.provider.create_subscription(
            BillingUser(user_id=user_id, email=user["email"], name=name),
            plan_price_cents=self.config.pro_monthly_cents,
            success_url=self.config.success_url,
            cancel_url=self.config.cancel_url,
        )

        self.db.upsert_customer(
            user_id, self.provider.name, checkout.provider_customer_id, user["email"], name
        )
        self.upsert_subscription(
            user_id,
            provider_subscription_id=checkout.provider_subscription_id,
            provider_customer_id=checkout.provider_customer_id,
            provider_checkout_id=checkout.provider_checkout_id,
            status="PENDING",
            billing_type="CREDIT_CARD",
            raw_payload=checkout.raw,
        )
        self.apply_entitlement(user_id)

        logger.info(
            "Created Pro checkout",
            extra={"user_id": user_id, "provider_checkout_id": checkout.provider_checkout_id},
        )
        return {
            "checkoutUrl": checkout.checkout_url,
            "providerCheckoutId": checkout.provider_checkout_id,
        }

    def get_billing_state(self, user_id: str) -> dict[str, Any]:
        self.apply_entitlement(user_id)

        effective = self.get_effective_subscription(user_id)
        subscription = effective[0] if effective else None
        payment = self.db.get_latest_payment(user_id)
        plan = self.db.get_user_plan(user_id)

        subscription = subscription or {}
        payment = payment or {}
        return {
            "planKey": PLAN_KEY if effective else "free",
            "entitlementPlan": "pro" if plan and plan.get("plan") == "pro" else "free",
            "subscriptionStatus": subscription.get("status"),
            "billingType": subscription.get("billing_type"),
            "nextDueDate": subscription.get("next_due_date"),
            "currentPeriodEnd": subscription.get("current_period_end"),
            "cancelAtPeriodEnd": bool(subscription.get("cancel_at_period_end")),
            "cancelledAt": to_iso(subscription.get("cancelled_at")),
            "lastPaymentStatus": payment.get("status"),
            "lastPaymentDueDate": payment.get("due_date"),
            "lastPaymentPaidAt": payment.get("paid_at"),
        }

    def cancel_subscription(self, user_id: str) -> dict[str, bool]:
        """
        Cancel the effective subscription at the provider, then locally.

        The user keeps Pro until the current period ends.

        Raises:
            BillingError: If there is no provider subscription to cancel
        """
        effective = self.get_effective_subscription(user_id)
        subscription = effective[0] if effective else None
        if not subscription or not subscription.get("provider_subscription_id"):
            raise BillingError("No provider subscription found")

        self.provider.cancel_subscription(subscription["provider_subscription_id"])
        self.db.update_subscription(
            subscription["id"],
            {"status": "canceled", "cancel_at_period_end": True, "cancelled_at": utc_now()},
        )
        self.apply_entitlement(user_id)

        logger.info(
            "Cancelled subscription",
            extra={"user_id": user_id, "subscription_id": subscription["id"]},
        )
        return {"success": True}

    # Webhooks

    def handle_webhook(self, raw_body: str, payload_fingerprint: str) -> str:
        """
        Ingest one webhook delivery.

        Returns:
            "processed", "duplicate" or "failed"
        """
        try:
            # NaN and Infinity literals are not valid JSONB
            payload = json.loads(raw_body, parse_constant=lambda constant: None)
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            payload = {"invalidJson": True}

        event = self.provider.parse_webhook(payload)
        event_id = generate_id("bwe")

        inserted = self.db.insert_webhook_event(
            event_id,
            self.provider.name,
            event.event_type,
            event.provider_event_id,
            payload_fingerprint,
            event.raw,
        )
        if not inserted:
            logger.info(
                "Duplicate webhook ignored",
                extra={"event_type": event.event_type, "provider_event_id": event.provider_event_id},
            )
            return "duplicate"

        try:
            provider_customer_id = extract_provider_customer_id(payload)
            user_id = (
                self.db.find_user_id_by_customer(self.provider.name, provider_customer_id)
                if provider_customer_id
                else None
            )
            if not user_id:
                self.db.mark_webhook_event(event_id, "failed", "Unable to resolve billing user")
                return "failed"

            if event.subscription:
                self._upsert_subscription_snapshot(
                    user_id, provider_customer_id, event.subscription, event.raw
                )

            if event.payment:
                self.upsert_payment(
                    user_id,
                    event.payment,
                    event.payment.provider_subscription_id
                    or extract_provider_subscription_id(payload),
                    event.raw,
                )
                self._ensure_subscription_from_payment(
                    user_id, event.payment, provider_customer_id, event.event_type, event.raw
                )

            self.apply_entitlement(user_id)
            self.db.mark_webhook_event(event_id, "processed")
            logger.info(
                "Processed billing webhook",
                extra={"user_id": user_id, "event_type": event.event_type},
            )
            return "processed"
        except Exception as e:
            logger.warning(
                f"Failed to process billing webhook: {e}",
                extra={"event_type": event.event_type, "error": str(e)},
            )
            self.db.mark_webhook_event(event_id, "failed", str(e) or "Webhook processing failed")
            return "failed"

    def _upsert_subscription_snapshot(
        self,
        user_id: str,
        provider_customer_id: str,
        subscription: SubscriptionSnapshot,
        raw_payload: Mapping[str, Any],
    ) -> None:
        self.upsert_subscription(
            user_id,
            provider_subscription_id=subscription.provider_subscription_id,
            provider_customer_id=provider_customer_id,
            provider_checkout_id=subscription.checkout_session,
            status=subscription.status or "PENDING",
            billing_type=subscription.billing_type,
            next_due_date=subscription.next_due_date,
            current_period_end=subscription.end_date or subscription.next_due_date,
            raw_payload=raw_payload,
        )

    def _ensure_subscription_from_payment(
        self,
        user_id: str,
        payment: PaymentSnapshot,
        provider_customer_id: str,
        event_type: str,
        raw_payload: Mapping[str, Any],
    ) -> None:
        """Record the payment's subscription with a status derived from the event."""
        if not payment.provider_subscription_id:
            return

        self.upsert_subscription(
            user_id,
            provider_subscription_id=payment.provider_subscription_id,
            provider_customer_id=provider_customer_id,
            provider_checkout_id=None,
            status=subscription_status_from_event(event_type) or "pending",
            billing_type="CREDIT_CARD",
            next_due_date=payment.due_date,
            current_period_end=payment.due_date,
            raw_payload=raw_payload,
        )

    # Reconciliation

    def get_latest_provider_subscription_id(self, user_id: str) -> Optional[str]:
        effective = self.get_effective_subscription(user_id)
        if effective and effective[0].get("provider_subscription_id"):
            return effective[0]["provider_subscription_id"]

        fallback = self.db.get_latest_subscription(user_id, ["active", "past_due", "canceled"])
        return fallback.get("provider_subscription_id") if fallback else None

    def reconcile_subscription(self, user_id: str, provider_subscription_id: str) -> int:
        """
        Refresh one subscription and its payments from the provider.

        Returns:
            Number of payments upserted

        Raises:
            BillingError: If the provider or the local tables lack the data needed
        """
        subscription = self.provider.get_subscription(provider_subscription_id)
        if not subscription:
            raise BillingError("Subscription not found in provider")

        provider_customer_id = (
            subscription.provider_customer_id
            or self.db.find_subscription_customer_id(provider_subscription_id)
        )
        if not provider_customer_id:
            raise BillingError("Missing provider customer id for reconciliation")

        self._upsert_subscription_snapshot(
            user_id, provider_customer_id, subscription, subscription.raw
        )

        processed = 0
        for payment in self.provider.list_subscription_payments(provider_subscription_id):
            self.upsert_payment(user_id, payment, payment.provider_subscription_id, payment.raw)
            processed += 1

        self.apply_entitlement(user_id)
        return processed
