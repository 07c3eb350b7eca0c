"""Contacts CRM endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from replyflow.api.deps import get_contacts_db, get_current_user_id, get_outreach_db, get_plan_db
from replyflow.api.schemas import ContactCreate, ContactUpdate
from replyflow.contacts import (
    contacts_to_csv,
    create_contact,
    delete_contact,
    list_contacts,
    save_job_contact,
    update_contact,
)

router = APIRouter()


@router.get("/api/contacts")
def contacts(
    status: Optional[str] = None,
    export_format: Optional[str] = Query(default=None, alias="format"),
    user_id: str = Depends(get_current_user_id),
    contacts_db=Depends(get_contacts_db),
    plan_db=Depends(get_plan_db),
):
    items = list_contacts(contacts_db, plan_db, user_id, status)
    if export_format == "csv":
        return Response(
            content=contacts_to_csv(items),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": 'attachment; filename="contacts.csv"'},
        )
    return {"contacts": items}


@router.post("/api/contacts")
def add_contact(
    payload: ContactCreate,
    user_id: str = Depends(get_current_user_id),
    contacts_db=Depends(get_contacts_db),
    outreach_db=Depends(get_outreach_db),
    plan_db=Depends(get_plan_db),
):
    """Save a job's recruiter when ``jobId`` is given, otherwise add a manual contact."""
    if payload.job_id:
        return save_job_contact(contacts_db, outreach_db, plan_db, user_id, payload.job_id)
    return create_contact(contacts_db, user_id, payload.model_dump(exclude={"job_id"}))


@router.patch("/api/contacts/{contact_id}")
def edit_contact(
    contact_id: str,
    payload: ContactUpdate,
    user_id: str = Depends(get_current_user_id),
    contacts_db=Depends(get_contacts_db),
):
    return update_contact(contacts_db, user_id, contact_id, payload.model_dump())


@router.delete("/api/contacts/{contact_id}")
def remove_contact(
    contact_id: str,
    user_id: str = Depends(get_current_user_id),
    contacts_db=Depends(get_contacts_db),
):
    return delete_contact(contacts_db, user_id, contact_id)
