"""Source management endpoints."""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query

from replyflow.api.deps import get_current_user_id, get_plan_db, get_sources_db
from replyflow.sources import create_source, list_sources, update_source_settings, validate_source

router = APIRouter()


@router.get("/api/sources")
def sources(
    source_type: Optional[str] = Query(default=None, alias="sourceType"),
    status: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    sources_db=Depends(get_sources_db),
):
    return list_sources(sources_db, user_id, source_type, status)


@router.post("/api/sources")
def add_source(
    payload: dict[str, Any] = Body(...),
    user_id: str = Depends(get_current_user_id),
    sources_db=Depends(get_sources_db),
    plan_db=Depends(get_plan_db),
):
    return create_source(sources_db, plan_db, user_id, payload)


@router.patch("/api/sources/{source_id}")
def edit_source(
    source_id: str,
    payload: dict[str, Any] = Body(...),
    user_id: str = Depends(get_current_user_id),
    sources_db=Depends(get_sources_db),
    plan_db=Depends(get_plan_db),
):
    return update_source_settings(sources_db, plan_db, user_id, source_id, payload)


@router.post("/api/sources/{source_id}/validate")
def validate(
    source_id: str,
    user_id: str = Depends(get_current_user_id),
    sources_db=Depends(get_sources_db),
    plan_db=Depends(get_plan_db),
):
    return validate_source(sources_db, plan_db, user_id, source_id)
