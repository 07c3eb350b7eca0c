import hashlib
import json
from datetime import timedelta
from unittest import mock

import pytest

from replyflow.billing.provider import AsaasBillingProvider
from replyflow.billing.service import (
    BillingError,
    BillingService,
    SubscriptionAlreadyActiveError,
    reais_to_cents,
)
from replyflow.common.utils import utc_now
from tests.fakes import FakeBillingDB

USER = {"id": "u1", "email": "ana@example.com", "name": "Ana Lima"}


def future_date(days=20):
    return (utc_now() + timedelta(days=days)).strftime("%Y-%m-%d")


@pytest.fixture
def asaas_client():
    client = mock.Mock()
    client.list_customers_by_external_reference.return_value = []
    client.create_customer.return_value = {"id": "cus_1"}
    client.create_checkout.return_value = {"id": "chk_1", "url": "https://sandbox.asaas.com/c/chk_1"}
    return client


@pytest.fixture
def db():
    return FakeBillingDB(users=[USER])


@pytest.fixture
def service(db, asaas_client, billing_config):
    return BillingService(db, AsaasBillingProvider(billing_config, client=asaas_client), billing_config)


def deliver(service, payload):
    raw_body = json.dumps(payload)
    return service.handle_webhook(raw_body, hashlib.sha256(raw_body.encode()).hexdigest())


def confirmed_payment_event(event_id="evt_1", due_date=None):
    return {
        "id": event_id,
        "event": "PAYMENT_CONFIRMED",
        "payment": {
            "id": "pay_1",
            "customer": "cus_1",
            "subscription": "sub_1",
            "status": "CONFIRMED",
            "value": 39.9,
            "dueDate": due_date or future_date(),
            "paymentDate": utc_now().strftime("%Y-%m-%d"),
            "invoiceUrl": "https://sandbox.asaas.com/i/pay_1",
        },
    }


class TestCheckout:
    def test_creates_customer_checkout_and_pending_subscription(self, service, db, asaas_client):
        result = service.create_pro_checkout("u1")

        assert result == {
            "checkoutUrl": "https://sandbox.asaas.com/c/chk_1",
            "providerCheckoutId": "chk_1",
        }
        asaas_client.create_customer.assert_called_once_with(
            name="Ana Lima", email="ana@example.com", external_reference="u1", cpf_cnpj=None
        )
        checkout_kwargs = asaas_client.create_checkout.call_args[1]
        assert checkout_kwargs["value"] == 39.0
        assert checkout_kwargs["customer"] == "cus_1"

        subscription = db.subscriptions[0]
        assert subscription["status"] == "pending"
        assert subscription["provider_checkout_id"] == "chk_1"
        assert subscription["price_cents"] == 3900
        assert db.find_user_id_by_customer("asaas", "cus_1") == "u1"
        assert db.plans["u1"]["plan"] == "free"

    def test_reuses_pending_checkout(self, service, asaas_client):
        service.create_pro_checkout("u1")
        again = service.create_pro_checkout("u1")

        assert again["providerCheckoutId"] == "chk_1"
        assert again["checkoutUrl"] == "https://sandbox.asaas.com/checkoutSession/show?id=chk_1"
        assert asaas_client.create_checkout.call_count == 1

    def test_existing_customer_is_reused(self, service, asaas_client):
        asaas_client.list_customers_by_external_reference.return_value = [
            {"id": "cus_other", "email": "someone@example.com"},
            {"id": "cus_9", "email": "ANA@example.com"},
        ]

        service.create_pro_checkout("u1")

        asaas_client.create_customer.assert_not_called()
        assert asaas_client.create_checkout.call_args[1]["customer"] == "cus_9"

    def test_active_pro_cannot_check_out_again(self, service):
        service.create_pro_checkout("u1")
        deliver(service, confirmed_payment_event())

        with pytest.raises(SubscriptionAlreadyActiveError):
            service.create_pro_checkout("u1")

    def test_unknown_user(self, service):
        with pytest.raises(BillingError, match="User not found"):
            service.create_pro_checkout("ghost")


class TestWebhooks:
    def test_confirmed_payment_grants_pro(self, service, db):
        service.create_pro_checkout("u1")

        status = deliver(service, confirmed_payment_event())

        assert status == "processed"
        subscription = next(s for s in db.subscriptions if s.get("provider_subscription_id") == "sub_1")
        assert subscription["status"] == "active"
        payment = db.payments[("asaas", "pay_1")]
        assert payment["status"] == "paid"
        assert payment["amount_cents"] == 3990
        assert db.plans["u1"]["plan"] == "pro"
        event = next(iter(db.webhook_events.values()))
        assert event["status"] == "processed"
        assert event["provider_event_id"] == "evt_1"

    def test_redelivery_is_duplicate(self, service):
        service.create_pro_checkout("u1")
        assert deliver(service, confirmed_payment_event()) == "processed"

        assert deliver(service, confirmed_payment_event()) == "duplicate"

    def test_non_finite_amount_is_stored_as_zero(self, service, db):
        service.create_pro_checkout("u1")
        event = confirmed_payment_event()
        event["payment"]["value"] = float("nan")

        assert deliver(service, event) == "processed"
        assert db.payments[("asaas", "pay_1")]["amount_cents"] == 0
        assert db.plans["u1"]["plan"] == "pro"
        stored = next(iter(db.webhook_events.values()))["payload"]
        assert stored["payment"]["value"] is None

    def test_event_without_id_uses_payment_id(self, service, db):
        service.create_pro_checkout("u1")
        payload = confirmed_payment_event()
        del payload["id"]

        deliver(service, payload)

        event = next(iter(db.webhook_events.values()))
        assert event["provider_event_id"] == "PAYMENT_CONFIRMED:pay_1"

    def test_unknown_customer_fails(self, service, db):
        status = deliver(service, confirmed_payment_event())

        assert status == "failed"
        event = next(iter(db.webhook_events.values()))
        assert event["error_message"] == "Unable to resolve billing user"

    def test_invalid_json_is_logged_and_fails(self, service, db):
        status = service.handle_webhook("{not json", "fingerprint-1")

        assert status == "failed"
        event = next(iter(db.webhook_events.values()))
        assert event["payload"] == {"invalidJson": True}
        assert event["event_type"] == "UNKNOWN"

    def test_overdue_past_grace_downgrades(self, service, db):
        service.create_pro_checkout("u1")
        deliver(service, confirmed_payment_event())

        overdue = confirmed_payment_event(event_id="evt_2", due_date="2020-01-01")
        overdue["event"] = "PAYMENT_OVERDUE"
        overdue["payment"]["status"] = "OVERDUE"
        overdue["payment"]["id"] = "pay_2"
        deliver(service, overdue)

        subscription = next(s for s in db.subscriptions if s.get("provider_subscription_id") == "sub_1")
        assert subscription["status"] == "past_due"
        assert db.plans["u1"]["plan"] == "free"


class TestStateAndCancel:
    def test_billing_state_for_free_user(self, service):
        state = service.get_billing_state("u1")

        assert state["planKey"] == "free"
        assert state["entitlementPlan"] == "free"
        assert state["subscriptionStatus"] is None
        assert state["cancelAtPeriodEnd"] is False

    def test_billing_state_after_payment(self, service):
        service.create_pro_checkout("u1")
        deliver(service, confirmed_payment_event())

        state = service.get_billing_state("u1")

        assert state["planKey"] == "pro_monthly"
        assert state["entitlementPlan"] == "pro"
        assert state["subscriptionStatus"] == "active"
        assert state["lastPaymentStatus"] == "paid"

    def test_cancel_keeps_pro_until_period_end(self, service, db, asaas_client):
        service.create_pro_checkout("u1")
        deliver(service, confirmed_payment_event())

        assert service.cancel_subscription("u1") == {"success": True}

        asaas_client.cancel_subscription.assert_called_once_with("sub_1")
        subscription = next(s for s in db.subscriptions if s.get("provider_subscription_id") == "sub_1")
        assert subscription["status"] == "canceled"
        assert subscription["cancel_at_period_end"] is True
        assert db.plans["u1"]["plan"] == "pro"

    def test_cancel_without_subscription(self, service):
        with pytest.raises(BillingError, match="No provider subscription found"):
            service.cancel_subscription("u1")


class TestReconcileSubscription:
    def test_refreshes_subscription_and_payments(self, service, db, asaas_client):
        asaas_client.get_subscription.return_value = {
            "id": "sub_1",
            "customer": "cus_1",
            "status": "ACTIVE",
            "billingType": "CREDIT_CARD",
            "nextDueDate": future_date(30),
        }
        asaas_client.list_subscription_payments.return_value = [
            {"id": "pay_1", "subscription": "sub_1", "status": "RECEIVED", "value": 39},
            {"id": "pay_2", "subscription": "sub_1", "status": "PENDING", "value": "39.00"},
        ]

        processed = service.reconcile_subscription("u1", "sub_1")

        assert processed == 2
        assert db.subscriptions[0]["status"] == "active"
        assert db.payments[("asaas", "pay_2")]["amount_cents"] == 0
        assert db.plans["u1"]["plan"] == "pro"

    def test_missing_provider_subscription(self, service, asaas_client):
        asaas_client.get_subscription.return_value = {}

        with pytest.raises(BillingError, match="Subscription not found"):
            service.reconcile_subscription("u1", "sub_1")

    def test_missing_customer_id(self, service, asaas_client):
        asaas_client.get_subscription.return_value = {"id": "sub_1", "status": "ACTIVE"}

        with pytest.raises(BillingError, match="Missing provider customer id"):
            service.reconcile_subscription("u1", "sub_1")


@pytest.mark.parametrize(
    "value,expected",
    [
        (39.9, 3990),
        ("19.95", 1995),
        (None, 0),
        (True, 0),
        ("abc", 0),
        (float("nan"), 0),
        (float("inf"), 0),
        ("-Infinity", 0),
    ],
)
def test_reais_to_cents(value, expected):
    assert reais_to_cents(value) == expected
