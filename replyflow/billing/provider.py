"""
Billing provider abstraction and the Asaas implementation.

The service layer only sees provider-neutral snapshots; the provider maps
Asaas JSON into them and back.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import quote

from .asaas_client import AsaasClient
from .config import BillingConfig

logger = logging.getLogger(__name__)

CHECKOUT_NAME = "ReplyFlow Pro"


@dataclass
class BillingUser:
    user_id: str
    email: str
    name: str
    cpf_cnpj: Optional[str] = None


@dataclass
class SubscriptionSnapshot:
    provider_subscription_id: str
    provider_customer_id: Optional[str] = None
    status: Optional[str] = None
    billing_type: Optional[str] = None
    next_due_date: Optional[str] = None
    date_created: Optional[str] = None
    end_date: Optional[str] = None
    checkout_session: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class PaymentSnapshot:
    provider_payment_id: str
    provider_subscription_id: Optional[str] = None
    provider_customer_id: Optional[str] = None
    status: str = "PENDING"
    value: Any = 0
    due_date: Optional[str] = None
    payment_date: Optional[str] = None
    invoice_url: Optional[str] = None
    bank_slip_url: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class CheckoutSession:
    provider: str
    provider_checkout_id: str
    checkout_url: str
    provider_subscription_id: Optional[str]
    provider_customer_id: str
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class WebhookEvent:
    event_type: str
    provider_event_id: Optional[str]
    payment: Optional[PaymentSnapshot]
    subscription: Optional[SubscriptionSnapshot]
    raw: dict[str, Any] = field(default_factory=dict)


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def map_subscription(data: Mapping[str, Any]) -> SubscriptionSnapshot:
    return SubscriptionSnapshot(
        provider_subscription_id=str(data.get("id") or ""),
        provider_customer_id=_str_or_none(data.get("customer")),
        status=_str_or_none(data.get("status")),
        billing_type=_str_or_none(data.get("billingType")),
        next_due_date=_str_or_none(data.get("nextDueDate")),
        date_created=_str_or_none(data.get("dateCreated")),
        end_date=_str_or_none(data.get("endDate")),
        checkout_session=_str_or_none(data.get("checkoutSession")),
        raw=dict(data),
    )


def map_payment(data: Mapping[str, Any]) -> PaymentSnapshot:
    value = data.get("value")
    return PaymentSnapshot(
        provider_payment_id=str(data.get("id") or ""),
        provider_subscription_id=_str_or_none(data.get("subscription")),
        provider_customer_id=_str_or_none(data.get("customer")),
        status=data.get("status") or "PENDING",
        value=value if isinstance(value, (int, float)) and not isinstance(value, bool) else 0,
        due_date=_str_or_none(data.get("dueDate")),
        payment_date=_str_or_none(data.get("paymentDate")),
        invoice_url=_str_or_none(data.get("invoiceUrl")),
        bank_slip_url=_str_or_none(data.get("bankSlipUrl")),
        raw=dict(data),
    )


def extract_provider_event_id(payload: Mapping[str, Any]) -> Optional[str]:
    """Event id: payload ``id``, else ``<event>:<payment id>``, else None."""
    event_id = payload.get("id")
    if isinstance(event_id, str) and event_id:
        return event_id

    event = payload.get("event")
    payment = payload.get("payment")
    if isinstance(event, str) and isinstance(payment, Mapping):
        payment_id = payment.get("id")
        if isinstance(payment_id, str) and payment_id:
            return f"{event}:{payment_id}"

    return None


def checkout_url_for(checkout_base_url: str, checkout_id: str) -> str:
    return f"{checkout_base_url}/checkoutSession/show?id={quote(checkout_id, safe='')}"


class BillingProvider(ABC):
    """Operations the billing service needs from a payment provider."""

    name: str = ""

    @abstractmethod
    def create_or_get_customer(self, user: BillingUser) -> tuple[str, dict[str, Any]]:
        """Return (provider customer id, raw payload)."""
        pass

    @abstractmethod
    def create_subscription(
        self, user: BillingUser, plan_price_cents: int, success_url: str, cancel_url: str
    ) -> CheckoutSession:
        pass

    @abstractmethod
    def get_subscription(self, provider_subscription_id: str) -> Optional[SubscriptionSnapshot]:
        pass

    @abstractmethod
    def cancel_subscription(self, provider_subscription_id: str) -> dict[str, Any]:
        pass

    @abstractmethod
    def list_subscription_payments(self, provider_subscription_id: str) -> list[PaymentSnapshot]:
        pass

    @abstractmethod
    def parse_webhook(self, payload: Mapping[str, Any]) -> WebhookEvent:
        pass


class AsaasBillingProvider(BillingProvider):
    """Asaas implementation backed by :class:`AsaasClient`."""

    name = "asaas"

    def __init__(self, config: BillingConfig, client: Optional[AsaasClient] = None):
        self.config = config
        self._client = client

    @property
    def client(self) -> AsaasClient:
        if self._client is None:
            self._client = AsaasClient(self.config.asaas_api_key, self.config.asaas_base_url)
        return self._client

    def create_or_get_customer(self, user: BillingUser) -> tuple[str, dict[str, Any]]:
        existing = self.client.list_customers_by_external_reference(user.user_id)
        email = user.email.lower()
        matched = next(
            (c for c in existing if (c.get("email") or "").lower() == email),
            existing[0] if existing else None,
        )
        if matched:
            return matched["id"], matched

        created = self.client.create_customer(
            name=user.name,
            email=user.email,
            external_reference=user.user_id,
            cpf_cnpj=user.cpf_cnpj,
        )
        logger.info("Created Asaas customer", extra={"user_id": user.user_id})
        return created["id"], created

    def create_subscription(
        self, user: BillingUser, plan_price_cents: int, success_url: str, cancel_url: str
    ) -> CheckoutSession:
        customer_id, _ = self.create_or_get_customer(user)

        reais = plan_price_cents / 100
        checkout = self.client.create_checkout(
            customer=customer_id,
            name=CHECKOUT_NAME,
            description=f"ReplyFlow Pro mensal (R$ {reais:g})",
            value=reais,
            success_url=success_url,
            cancel_url=cancel_url,
            external_reference=user.user_id,
        )

        url = checkout.get("url")
        checkout_url = (
            url if isinstance(url, str) and url
            else checkout_url_for(self.config.asaas_checkout_base_url, checkout["id"])
        )

        return CheckoutSession(
            provider=self.name,
            provider_checkout_id=checkout["id"],
            checkout_url=checkout_url,
            provider_subscription_id=_str_or_none(checkout.get("subscription")),
            provider_customer_id=customer_id,
            raw=checkout,
        )

    def get_subscription(self, provider_subscription_id: str) -> Optional[SubscriptionSnapshot]:
        data = self.client.get_subscription(provider_subscription_id)
        return map_subscription(data) if data else None

    def cancel_subscription(self, provider_subscription_id: str) -> dict[str, Any]:
        return self.client.cancel_subscription(provider_subscription_id)

    def list_subscription_payments(self, provider_subscription_id: str) -> list[PaymentSnapshot]:
        return [
            map_payment(payment)
            for payment in self.client.list_subscription_payments(provider_subscription_id)
        ]

    def parse_webhook(self, payload: Mapping[str, Any]) -> WebhookEvent:
        """
        Turn a webhook body into a WebhookEvent.

        A payment that points at a subscription yields a minimal
        subscription snapshot when the body carries no subscription object.
        """
        event = payload.get("event")
        event_type = event if isinstance(event, str) else "UNKNOWN"

        payment_raw = payload.get("payment")
        payment = map_payment(payment_raw) if isinstance(payment_raw, Mapping) else None

        subscription_raw = payload.get("subscription")
        subscription = None
        if isinstance(subscription_raw, Mapping):
            subscription = map_subscription(subscription_raw)
        elif payment and payment.provider_subscription_id:
            subscription = SubscriptionSnapshot(
                provider_subscription_id=payment.provider_subscription_id
            )

        return WebhookEvent(
            event_type=event_type,
            provider_event_id=extract_provider_event_id(payload),
            payment=payment,
            subscription=subscription,
            raw=dict(payload),
        )


def get_billing_provider(config: BillingConfig) -> BillingProvider:
    if config.provider == "asaas":
        return AsaasBillingProvider(config)
    raise ValueError(f"Unsupported billing provider: {config.provider}")
