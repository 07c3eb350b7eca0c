"""Reconcile local billing state against the provider, per user or in bulk."""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from .service import BillingService

logger = logging.getLogger(__name__)

DEFAULT_MAX_USERS = 50
MAX_USERS_LIMIT = 200


@dataclass
class ReconcileResult:
    user_id: str
    success: bool
    subscription_id: Optional[str] = None
    processed_payments: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result = {
            "userId": self.user_id,
            "success": self.success,
            "subscriptionId": self.subscription_id,
            "processedPayments": self.processed_payments,
        }
        if self.error is not None:
            result["error"] = self.error
        return result


def clamp_max_users(value: Any) -> int:
    """Clamp a requested batch size to 1..200; non-numbers give the default."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_MAX_USERS
    return int(max(1, min(MAX_USERS_LIMIT, value)))


def reconcile_billing_for_user(service: BillingService, user_id: str) -> ReconcileResult:
    """
    Reconcile the user's latest provider subscription.

    Users without a provider subscription succeed with nothing processed.
    Errors are captured in the result instead of raised.
    """
    try:
        provider_subscription_id = service.get_latest_provider_subscription_id(user_id)
        if not provider_subscription_id:
            return ReconcileResult(user_id=user_id, success=True)

        processed = service.reconcile_subscription(user_id, provider_subscription_id)
        return ReconcileResult(
            user_id=user_id,
            success=True,
            subscription_id=provider_subscription_id,
            processed_payments=processed,
        )
    except Exception as e:
        logger.warning(
            f"Billing reconciliation failed for user {user_id}: {e}",
            extra={"user_id": user_id, "error": str(e)},
        )
        return ReconcileResult(
            user_id=user_id, success=False, error=str(e) or "Reconciliation failed"
        )


def reconcile_stale_billing(
    service: BillingService, max_users: int = DEFAULT_MAX_USERS
) -> list[ReconcileResult]:
    """Reconcile up to ``max_users`` users with live subscriptions."""
    user_ids = service.db.list_users_for_reconciliation(max_users)
    logger.info(f"Reconciling billing for {len(user_ids)} users")

    results = [reconcile_billing_for_user(service, user_id) for user_id in user_ids]

    logger.info(
        "Billing reconciliation completed",
        extra={
            "total": len(results),
            "failures": sum(1 for result in results if not result.success),
        },
    )
    return results
