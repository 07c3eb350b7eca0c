"""Outreach pipeline endpoints: list, draft, update, send and email history."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from replyflow.api.deps import (
    get_contacts_db,
    get_current_user_id,
    get_delivery_channel,
    get_outreach_db,
    get_plan_db,
)
from replyflow.api.schemas import DraftRequest, OutreachUpdate, SendRequest
from replyflow.outreach import (
    create_outreach_draft,
    list_email_history,
    list_outreach,
    send_outreach_email,
    update_outreach,
)

router = APIRouter()


@router.get("/api/outreach")
def get_outreach(
    status: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    outreach_db=Depends(get_outreach_db),
    plan_db=Depends(get_plan_db),
):
    return {"records": list_outreach(outreach_db, plan_db, user_id, status)}


@router.post("/api/outreach")
def create_draft(
    payload: DraftRequest,
    user_id: str = Depends(get_current_user_id),
    outreach_db=Depends(get_outreach_db),
    plan_db=Depends(get_plan_db),
    contacts_db=Depends(get_contacts_db),
):
    return create_outreach_draft(
        outreach_db, plan_db, contacts_db, user_id, payload.job_id, payload.language
    )


@router.patch("/api/outreach")
def patch_outreach(
    payload: OutreachUpdate,
    user_id: str = Depends(get_current_user_id),
    outreach_db=Depends(get_outreach_db),
):
    changes = payload.model_dump(exclude_unset=True, exclude={"id"})
    return update_outreach(outreach_db, user_id, payload.id, changes)


@router.put("/api/outreach")
def send(
    payload: SendRequest,
    user_id: str = Depends(get_current_user_id),
    outreach_db=Depends(get_outreach_db),
    plan_db=Depends(get_plan_db),
    contacts_db=Depends(get_contacts_db),
    channel=Depends(get_delivery_channel),
):
    return send_outreach_email(
        outreach_db,
        plan_db,
        contacts_db,
        channel,
        user_id,
        payload.id,
        to_email_override=payload.to_email,
        email_subject=payload.email_subject,
        email_body=payload.email_body,
    )


@router.get("/api/emails/history")
def email_history(
    status: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user_id: str = Depends(get_current_user_id),
    outreach_db=Depends(get_outreach_db),
    plan_db=Depends(get_plan_db),
):
    return list_email_history(outreach_db, plan_db, user_id, status, limit=limit, offset=offset)
