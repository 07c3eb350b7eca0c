"""Job board listing, per-job outreach status, contact reveals and match scoring."""

from fastapi import APIRouter, Depends, HTTPException, Request

from replyflow.api.deps import (
    get_contacts_db,
    get_current_user_id,
    get_jobs_db,
    get_matcher_db,
    get_matching_config,
    get_outreach_db,
    get_plan_db,
)
from replyflow.api.schemas import JobStatusUpdate, RevealRequest
from replyflow.jobs import JobQuery, list_jobs
from replyflow.matcher import calculate_match_scores_for_user
from replyflow.outreach import reveal_job_contact, set_job_outreach_status

router = APIRouter()


@router.get("/api/jobs")
def job_board(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    jobs_db=Depends(get_jobs_db),
    plan_db=Depends(get_plan_db),
):
    return list_jobs(jobs_db, plan_db, user_id, JobQuery.from_params(request.query_params))


@router.patch("/api/jobs")
def update_job_status(
    payload: JobStatusUpdate,
    user_id: str = Depends(get_current_user_id),
    outreach_db=Depends(get_outreach_db),
):
    if not payload.id or not payload.outreach_status:
        raise HTTPException(status_code=400, detail="id and outreachStatus required")
    return set_job_outreach_status(outreach_db, user_id, payload.id, payload.outreach_status)


@router.post("/api/jobs/reveal")
def reveal(
    payload: RevealRequest,
    user_id: str = Depends(get_current_user_id),
    outreach_db=Depends(get_outreach_db),
    plan_db=Depends(get_plan_db),
    contacts_db=Depends(get_contacts_db),
):
    return reveal_job_contact(outreach_db, plan_db, contacts_db, user_id, payload.job_id)


@router.post("/api/jobs/match")
def match(
    user_id: str = Depends(get_current_user_id),
    matcher_db=Depends(get_matcher_db),
    matching_config=Depends(get_matching_config),
):
    updated_count = calculate_match_scores_for_user(matcher_db, user_id, matching_config)
    return {"success": True, "updatedCount": updated_count}
