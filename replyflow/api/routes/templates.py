"""Email template endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from replyflow.api.deps import get_current_user_id, get_templates_db
from replyflow.api.schemas import TemplateCreate, TemplateUpdate
from replyflow.templates import (
    create_template,
    delete_template,
    get_template,
    list_templates,
    update_template,
)

router = APIRouter()


@router.get("/api/templates")
def templates(
    language: Optional[str] = None,
    template_type: Optional[str] = Query(default=None, alias="type"),
    user_id: str = Depends(get_current_user_id),
    templates_db=Depends(get_templates_db),
):
    return {"templates": list_templates(templates_db, user_id, language, template_type)}


@router.post("/api/templates")
def add_template(
    payload: TemplateCreate,
    user_id: str = Depends(get_current_user_id),
    templates_db=Depends(get_templates_db),
):
    return create_template(templates_db, user_id, payload.model_dump())


@router.get("/api/templates/{template_id}")
def template(
    template_id: str,
    user_id: str = Depends(get_current_user_id),
    templates_db=Depends(get_templates_db),
):
    return {"template": get_template(templates_db, user_id, template_id)}


@router.put("/api/templates/{template_id}")
def edit_template(
    template_id: str,
    payload: TemplateUpdate,
    user_id: str = Depends(get_current_user_id),
    templates_db=Depends(get_templates_db),
):
    return update_template(templates_db, user_id, template_id, payload.model_dump())


@router.delete("/api/templates/{template_id}")
def remove_template(
    template_id: str,
    user_id: str = Depends(get_current_user_id),
    templates_db=Depends(get_templates_db),
):
    return delete_template(templates_db, user_id, template_id)
