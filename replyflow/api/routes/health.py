from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from replyflow.api.deps import get_plan_db

router = APIRouter()


@router.get("/api/health")
def health(plan_db=Depends(get_plan_db)):
    if plan_db.ping():
        return {"status": "ok", "db": "connected"}
    return JSONResponse(status_code=503, content={"status": "error", "db": "disconnected"})
