"""Source sync: token-protected for external schedulers, session-protected for users."""

import hmac
import logging
import os
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from replyflow.api.deps import (
    get_contacts_db,
    get_current_user_id,
    get_plan_db,
    get_sources_catalog,
    get_sources_db,
)
from replyflow.api.schemas import SyncRequest, SystemSyncRequest
from replyflow.outreach import UpgradeRequiredError
from replyflow.plan.service import assert_within_source_daily_quota
from replyflow.sources.sync import SyncAlreadyRunningError, SyncOptions, run_source_sync

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/api/sync")
def user_sync(
    payload: Optional[SyncRequest] = None,
    user_id: str = Depends(get_current_user_id),
    sources_db=Depends(get_sources_db),
    contacts_db=Depends(get_contacts_db),
    plan_db=Depends(get_plan_db),
    catalog=Depends(get_sources_catalog),
):
    """
    Sync now on behalf of the signed-in user.

    Uses one unit of the daily ``manual_sync`` quota unless only existing
    jobs are re-parsed; discovery respects the user's source slots.
    """
    payload = payload or SyncRequest()
    if not payload.reparse_existing:
        check = assert_within_source_daily_quota(plan_db, user_id, "manual_sync")
        if not check.ok:
            raise UpgradeRequiredError(check.feature, check.limit, check.period)

    options = SyncOptions(
        source_id=payload.source_id,
        source_full_name=payload.source_full_name,
        reparse_existing=payload.reparse_existing,
        user_id=user_id,
        run_discovery=payload.run_discovery,
        enforce_schedule=False,
    )

    try:
        result = run_source_sync(sources_db, contacts_db, options, catalog=catalog, plan_db=plan_db)
    except SyncAlreadyRunningError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e

    logger.info(
        "User sync finished",
        extra={"user_id": user_id, "sources": len(result.results), "new_jobs": result.total_new_jobs},
    )
    return result.to_dict()


@router.post("/api/sync/system")
def system_sync(
    payload: Optional[SystemSyncRequest] = None,
    x_replyflow_sync_token: Optional[str] = Header(default=None),
    sources_db=Depends(get_sources_db),
    contacts_db=Depends(get_contacts_db),
    catalog=Depends(get_sources_catalog),
):
    expected_token = os.getenv("REPLYFLOW_SYNC_TOKEN")
    if not expected_token:
        raise HTTPException(status_code=500, detail="REPLYFLOW_SYNC_TOKEN not configured")
    if not x_replyflow_sync_token or not hmac.compare_digest(x_replyflow_sync_token, expected_token):
        raise HTTPException(status_code=401, detail="Unauthorized")

    payload = payload or SystemSyncRequest()
    options = SyncOptions(
        source_id=payload.source_id,
        source_full_name=payload.source_full_name,
        reparse_existing=payload.reparse_existing,
        run_discovery=payload.run_discovery,
        enforce_schedule=True,
    )

    try:
        result = run_source_sync(sources_db, contacts_db, options, catalog=catalog)
    except SyncAlreadyRunningError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e

    logger.info(
        "System sync finished",
        extra={"sources": len(result.results), "new_jobs": result.total_new_jobs},
    )
    return result.to_dict()
