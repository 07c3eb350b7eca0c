"""
Request dependencies for the HTTP API.

Database interfaces and the delivery channel live on ``app.state`` (set up
by the application lifespan); route handlers receive them through these
functions so tests can swap them with ``app.dependency_overrides``.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request

from replyflow.billing import BillingService, get_billing_config, get_billing_provider
from replyflow.billing.db_operations import BillingDB
from replyflow.plan.service import SessionUser, ensure_user_exists

logger = logging.getLogger(__name__)

SESSION_COOKIE = "replyflow_session"


def get_plan_db(request: Request):
    return request.app.state.plan_db


def get_contacts_db(request: Request):
    return request.app.state.contacts_db


def get_outreach_db(request: Request):
    return request.app.state.outreach_db


def get_matcher_db(request: Request):
    return request.app.state.matcher_db


def get_sources_db(request: Request):
    return request.app.state.sources_db


def get_jobs_db(request: Request):
    return request.app.state.jobs_db


def get_templates_db(request: Request):
    return request.app.state.templates_db


def get_delivery_channel(request: Request):
    return request.app.state.delivery_channel


def get_billing_service(request: Request) -> BillingService:
    """Build the billing service on first use; billing env vars are only needed here."""
    service = getattr(request.app.state, "billing_service", None)
    if service is None:
        config = get_billing_config()
        db = BillingDB(request.app.state.database_url)
        service = BillingService(db, get_billing_provider(config), config)
        request.app.state.billing_service = service
    return service


def _session_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        token = header[7:].strip()
        if token:
            return token
    return request.cookies.get(SESSION_COOKIE) or None


def get_current_user_id(request: Request, plan_db=Depends(get_plan_db)) -> str:
    """
    Resolve the session to a canonical user id.

    The session token comes from ``Authorization: Bearer`` or the
    ``replyflow_session`` cookie.

    Raises:
        HTTPException: 401 when the token is missing, unknown or expired
    """
    token = _session_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")

    row = plan_db.get_session_user(token)
    if not row:
        raise HTTPException(status_code=401, detail="Unauthorized")

    return ensure_user_exists(
        plan_db,
        SessionUser(id=row["id"], email=row.get("email"), name=row.get("name"), image=row.get("image")),
    )


def get_matching_config(request: Request):
    return getattr(request.app.state, "matching_config", None)


def get_sources_catalog(request: Request):
    return getattr(request.app.state, "sources_catalog", None)
