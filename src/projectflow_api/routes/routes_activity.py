from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from loguru import logger

from projectflow_api.dependencies import get_current_principal
from projectflow_api.dependencies import get_store
from projectflow_api.workspace.models.principal import Principal
from projectflow_api.workspace.orchestrator import recent_activity

ROUTER_ACTIVITY = APIRouter(tags=["Activity"])

RECENT_ACTIVITY_LIMIT = 20


@ROUTER_ACTIVITY.get("/activity/recent")
async def get_recent_activity(
    request: Request,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    """Latest activity records of the caller's company, newest first."""
    logger.info("Listing recent activity", method=request.method, path=request.url.path)
    activities = await recent_activity(store, principal, RECENT_ACTIVITY_LIMIT)
    return {"count": len(activities), "activities": activities}
