"""Health check endpoints for monitoring application status."""

from datetime import datetime
from datetime import timezone

from fastapi import APIRouter
from fastapi import Request
from fastapi import status
from fastapi.responses import JSONResponse
from loguru import logger

ROUTER_HEALTH = APIRouter(tags=["Health"])


@ROUTER_HEALTH.get(
    "/health",
    summary="Health check endpoint",
    description="Basic health check that returns application status and database availability",
    responses={
        status.HTTP_200_OK: {
            "description": "Application is healthy",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "timestamp": "2026-01-05T12:00:00.000000Z",
                        "service": "ProjectFlow API",
                        "version": "v1",
                        "database": "connected",
                    }
                }
            },
        },
        status.HTTP_503_SERVICE_UNAVAILABLE: {
            "description": "Database configured but unreachable",
        },
    },
)
async def health_check(request: Request):
    """
    Basic health check endpoint.

    Reports whether the workspace database is connected. The app still
    answers when no database is configured; data routes then return 503.

    Used by:
    - Azure Web App health monitoring
    - Load balancers
    """
    store = getattr(request.app.state, "store", None)
    if store is None:
        database = "not_configured"
    elif await store.health_check():
        database = "connected"
    else:
        database = "unreachable"

    healthy = database != "unreachable"
    response_data = {
        "status": "healthy" if healthy else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "ProjectFlow API",
        "version": "v1",
        "database": database,
    }

    logger.debug("Health check requested", status=response_data["status"], database=database)

    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response_data,
    )
