from fastapi import APIRouter, Depends

from replyflow.api.deps import get_current_user_id, get_jobs_db, get_plan_db, get_sources_db
from replyflow.jobs import get_dashboard_stats

router = APIRouter()


@router.get("/api/stats")
def stats(
    user_id: str = Depends(get_current_user_id),
    jobs_db=Depends(get_jobs_db),
    plan_db=Depends(get_plan_db),
    sources_db=Depends(get_sources_db),
):
    return get_dashboard_stats(jobs_db, plan_db, sources_db, user_id)
