"""
Billing

Pro subscriptions through Asaas: checkout, webhooks, cancellation and
reconciliation, with the resulting entitlement projected into user_plan.
"""

from .asaas_client import AsaasApiError, AsaasClient
from .config import BillingConfig, get_billing_config
from .entitlements import (
    Entitlement,
    map_payment_status,
    map_subscription_status,
    resolve_entitlement,
    subscription_status_from_event,
)
from .provider import AsaasBillingProvider, BillingProvider, get_billing_provider
from .reconciliation import ReconcileResult, reconcile_billing_for_user, reconcile_stale_billing
from .service import BillingError, BillingService, SubscriptionAlreadyActiveError

__all__ = [
    "AsaasApiError",
    "AsaasClient",
    "BillingConfig",
    "get_billing_config",
    "Entitlement",
    "map_payment_status",
    "map_subscription_status",
    "resolve_entitlement",
    "subscription_status_from_event",
    "AsaasBillingProvider",
    "BillingProvider",
    "get_billing_provider",
    "ReconcileResult",
    "reconcile_billing_for_user",
    "reconcile_stale_billing",
    "BillingError",
    "BillingService",
    "SubscriptionAlreadyActiveError",
]
