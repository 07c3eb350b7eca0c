"""Checkout, billing state, cancellation, Asaas webhooks and reconciliation."""

import hashlib
import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool

from replyflow.api.deps import get_billing_service, get_current_user_id
from replyflow.api.schemas import ReconcileRequest
from replyflow.billing import (
    BillingService,
    SubscriptionAlreadyActiveError,
    reconcile_billing_for_user,
    reconcile_stale_billing,
)
from replyflow.billing.reconciliation import clamp_max_users

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/billing")


def _tokens_match(incoming: Optional[str], expected: str) -> bool:
    return hmac.compare_digest((incoming or "").encode(), expected.encode())


@router.post("/checkout")
def checkout(
    user_id: str = Depends(get_current_user_id),
    service: BillingService = Depends(get_billing_service),
):
    try:
        return service.create_pro_checkout(user_id)
    except SubscriptionAlreadyActiveError as e:
        raise HTTPException(status_code=409, detail="Subscription already active") from e


@router.get("/state")
def billing_state(
    user_id: str = Depends(get_current_user_id),
    service: BillingService = Depends(get_billing_service),
):
    return service.get_billing_state(user_id)


@router.post("/subscription/cancel")
def cancel_subscription(
    user_id: str = Depends(get_current_user_id),
    service: BillingService = Depends(get_billing_service),
):
    return service.cancel_subscription(user_id)


@router.post("/webhooks/asaas")
async def asaas_webhook(request: Request, service: BillingService = Depends(get_billing_service)):
    """
    Receive an Asaas event.

    Always answers 200 so the provider does not retry; a wrong token or a
    processing failure is only logged.
    """
    raw_body = (await request.body()).decode("utf-8", errors="replace")
    fingerprint = hashlib.sha256(raw_body.encode("utf-8")).hexdigest()

    webhook_token = service.config.asaas_webhook_token
    if webhook_token and not _tokens_match(request.headers.get("asaas-access-token"), webhook_token):
        logger.warning("Ignoring Asaas webhook with invalid access token")
        return {"ok": True}

    try:
        outcome = await run_in_threadpool(service.handle_webhook, raw_body, fingerprint)
        logger.info("Asaas webhook handled", extra={"outcome": outcome, "fingerprint": fingerprint})
    except Exception as e:
        logger.error(f"Billing webhook processing error: {e}", exc_info=True)

    return {"ok": True}


@router.post("/reconcile/system")
def reconcile_system(
    payload: Optional[ReconcileRequest] = None,
    x_replyflow_billing_token: Optional[str] = Header(default=None),
    service: BillingService = Depends(get_billing_service),
):
    if not _tokens_match(x_replyflow_billing_token, service.config.reconcile_token):
        raise HTTPException(status_code=401, detail="Unauthorized")

    payload = payload or ReconcileRequest()
    if payload.user_id:
        result = reconcile_billing_for_user(service, payload.user_id)
        return {"success": True, "results": [result.to_dict()]}

    results = reconcile_stale_billing(service, clamp_max_users(payload.max_users))
    return {
        "success": True,
        "total": len(results),
        "failures": sum(1 for result in results if not result.success),
        "results": [result.to_dict() for result in results],
    }
