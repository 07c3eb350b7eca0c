"""
Database Operations for billing.

This module handles all database interactions for billing:
- Customers, subscriptions and payments mirrored from the provider
- Webhook event log (idempotency)
- Projecting the entitlement into user_plan
"""

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any, Optional

from replyflow.common.db import BaseDB, as_json
from replyflow.common.utils import generate_id, utc_now

logger = logging.getLogger(__name__)

RECONCILABLE_STATUSES = ("pending", "active", "past_due", "canceled")


class BillingDB(BaseDB):
    """Database interface for billing tables and the user_plan projection."""

    # Users

    def get_user(self, user_id: str) -> Optional[dict[str, Any]]:
        return self._fetch_one(
            "SELECT id, email, name FROM users WHERE id = %s", [user_id], action="get billing user"
        )

    # Customers

    def upsert_customer(
        self,
        user_id: str,
        provider: str,
        provider_customer_id: str,
        email: Optional[str],
        name: Optional[str],
    ) -> None:
        now = utc_now()
        self._execute(
            """
            INSERT INTO billing_customers (
                id, user_id, provider, provider_customer_id, email, name, created_at, updated_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (user_id, provider) DO UPDATE SET
                provider_customer_id = EXCLUDED.provider_customer_id,
                email = EXCLUDED.email,
                name = EXCLUDED.name,
                updated_at = EXCLUDED.updated_at
            """,
            [generate_id("bc"), user_id, provider, provider_customer_id, email, name, now, now],
            action="upsert billing customer",
        )

    def find_user_id_by_customer(self, provider: str, provider_customer_id: str) -> Optional[str]:
        row = self._fetch_one(
            """
            SELECT user_id FROM billing_customers
            WHERE provider = %s AND provider_customer_id = %s
            """,
            [provider, provider_customer_id],
            action="resolve billing customer",
        )
        return row["user_id"] if row else None

    # Subscriptions

    def list_subscriptions(self, user_id: str) -> list[dict[str, Any]]:
        return self._fetch_all(
            "SELECT * FROM billing_subscriptions WHERE user_id = %s",
            [user_id],
            action="list subscriptions",
        )

    def get_latest_subscription(
        self, user_id: str, statuses: Sequence[str]
    ) -> Optional[dict[str, Any]]:
        return self._fetch_one(
            """
            SELECT * FROM billing_subscriptions
            WHERE user_id = %s AND status = ANY(%s)
            ORDER BY updated_at DESC
            LIMIT 1
            """,
            [user_id, list(statuses)],
            action="get latest subscription",
        )

    def find_subscription_customer_id(self, provider_subscription_id: str) -> Optional[str]:
        row = self._fetch_one(
            """
            SELECT provider_customer_id FROM billing_subscriptions
            WHERE provider_subscription_id = %s
            """,
            [provider_subscription_id],
            action="find subscription customer",
        )
        return row["provider_customer_id"] if row else None

    def upsert_subscription(self, data: dict[str, Any]) -> None:
        """
        Insert a subscription, or update it when the provider id is known.

        Rows without a provider subscription id (fresh checkouts) are always
        inserted.
        """
        now = utc_now()
        params = [
            generate_id("bs"),
            data["user_id"],
            data["provider"],
            data.get("provider_subscription_id"),
            data.get("provider_customer_id"),
            data.get("provider_checkout_id"),
            data.get("plan_key", "pro_monthly"),
            data["status"],
            data.get("billing_type") or "CREDIT_CARD",
            data["price_cents"],
            data.get("currency", "BRL"),
            data.get("next_due_date"),
            data.get("current_period_end"),
            bool(data.get("cancel_at_period_end")),
            data.get("cancelled_at"),
            as_json(data.get("raw_payload") or {}),
            now,
            now,
        ]
        insert = """
            INSERT INTO billing_subscriptions (
                id, user_id, provider, provider_subscription_id, provider_customer_id,
                provider_checkout_id, plan_key, status, billing_type, price_cents, currency,
                next_due_date, current_period_end, cancel_at_period_end, cancelled_at,
                raw_payload, created_at, updated_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """
        if not data.get("provider_subscription_id"):
            self._execute(insert, params, action="insert subscription")
            return

        self._execute(
            insert
            + """
            ON CONFLICT (provider, provider_subscription_id) DO UPDATE SET
                provider_customer_id = EXCLUDED.provider_customer_id,
                provider_checkout_id = EXCLUDED.provider_checkout_id,
                status = EXCLUDED.status,
                billing_type = EXCLUDED.billing_type,
                next_due_date = EXCLUDED.next_due_date,
                current_period_end = EXCLUDED.current_period_end,
                cancel_at_period_end = EXCLUDED.cancel_at_period_end,
                cancelled_at = EXCLUDED.cancelled_at,
                raw_payload = EXCLUDED.raw_payload,
                updated_at = EXCLUDED.updated_at
            """,
            params,
            action="upsert subscription",
        )

    def update_subscription(self, subscription_id: str, fields: dict[str, Any]) -> int:
        return self._update_row(
            "billing_subscriptions", subscription_id, {**fields, "updated_at": utc_now()}
        )

    def list_users_for_reconciliation(self, max_users: int) -> list[str]:
        """Distinct users with a live subscription, most recently updated first."""
        rows = self._fetch_all(
            """
            SELECT user_id FROM billing_subscriptions
            WHERE status = ANY(%s)
            ORDER BY updated_at DESC
            LIMIT %s
            """,
            [list(RECONCILABLE_STATUSES), max_users],
            action="list users for reconciliation",
        )
        return list(dict.fromkeys(row["user_id"] for row in rows))

    # Payments

    def upsert_payment(self, data: dict[str, Any]) -> None:
        now = utc_now()
        self._execute(
            """
            INSERT INTO billing_payments (
                id, user_id, provider, provider_payment_id, provider_subscription_id,
                status, amount_cents, currency, billing_type, due_date, paid_at,
                invoice_url, payment_link, raw_payload, created_at, updated_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (provider, provider_payment_id) DO UPDATE SET
                provider_subscription_id = EXCLUDED.provider_subscription_id,
                amount_cents = EXCLUDED.amount_cents,
                status = EXCLUDED.status,
                due_date = EXCLUDED.due_date,
                paid_at = EXCLUDED.paid_at,
                invoice_url = EXCLUDED.invoice_url,
                payment_link = EXCLUDED.payment_link,
                raw_payload = EXCLUDED.raw_payload,
                updated_at = EXCLUDED.updated_at
            """,
            [
                generate_id("bp"),
                data["user_id"],
                data["provider"],
                data["provider_payment_id"],
                data.get("provider_subscription_id"),
                data["status"],
                data.get("amount_cents", 0),
                data.get("currency", "BRL"),
                data.get("billing_type"),
                data.get("due_date"),
                data.get("paid_at"),
                data.get("invoice_url"),
                data.get("payment_link"),
                as_json(data.get("raw_payload") or {}),
                now,
                now,
            ],
            action="upsert payment",
        )

    def get_latest_payment(self, user_id: str) -> Optional[dict[str, Any]]:
        return self._fetch_one(
            """
            SELECT * FROM billing_payments WHERE user_id = %s
            ORDER BY updated_at DESC LIMIT 1
            """,
            [user_id],
            action="get latest payment",
        )

    # Webhook events

    def insert_webhook_event(
        self,
        event_id: str,
        provider: str,
        event_type: str,
        provider_event_id: Optional[str],
        payload_fingerprint: str,
        payload: dict[str, Any],
    ) -> bool:
        """Log a webhook delivery; False when the event was already recorded."""
        inserted = self._execute(
            """
            INSERT INTO billing_webhook_events (
                id, provider, provider_event_id, event_type, payload,
                payload_fingerprint, status, received_at
            ) VALUES (%s, %s, %s, %s, %s, %s, 'received', %s)
            ON CONFLICT DO NOTHING
            """,
            [
                event_id,
                provider,
                provider_event_id,
                event_type,
                as_json(payload),
                payload_fingerprint,
                utc_now(),
            ],
            action="insert webhook event",
        )
        return inserted > 0

    def mark_webhook_event(self, event_id: str, status: str, error_message: Optional[str] = None) -> int:
        return self._update_row(
            "billing_webhook_events",
            event_id,
            {"status": status, "error_message": error_message, "processed_at": utc_now()},
        )

    # Plan projection

    def get_user_plan(self, user_id: str) -> Optional[dict[str, Any]]:
        return self._fetch_one(
            "SELECT plan, plan_expires_at FROM user_plan WHERE user_id = %s",
            [user_id],
            action="get user plan",
        )

    def project_entitlement(self, user_id: str, plan: str, plan_expires_at: Optional[datetime]) -> None:
        now = utc_now()
        self._execute(
            """
            INSERT INTO user_plan (user_id, plan, plan_started_at, plan_expires_at, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s)
            ON CONFLICT (user_id) DO UPDATE SET
                plan = EXCLUDED.plan,
                plan_expires_at = EXCLUDED.plan_expires_at,
                updated_at = EXCLUDED.updated_at
            """,
            [user_id, plan, now, plan_expires_at, now, now],
            action="project entitlement",
        )

    def insert_free_plan_if_missing(self, user_id: str) -> int:
        now = utc_now()
        return self._execute(
            """
            INSERT INTO user_plan (user_id, plan, plan_started_at, created_at, updated_at)
            VALUES (%s, 'free', %s, %s, %s)
            ON CONFLICT (user_id) DO NOTHING
            """,
            [user_id, now, now, now],
            action="insert free plan",
        )
