"""Health check endpoint."""

import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from elportal.config import settings

# Module-level variable to track application start time
_app_start_time = time.time()

router = APIRouter(prefix="/api", tags=["Health"])


@router.get("/health")
async def get_health() -> JSONResponse:
    """
    Health check for monitoring and uptime checks.

    Does not touch the key-value store or upstream APIs.

    Returns:
        JSONResponse with status, version, and uptime_seconds
    """
    uptime_seconds = int(time.time() - _app_start_time)

    return JSONResponse(
        status_code=200,
        content={
            "status": "ok",
            "version": settings.api_version,
            "uptime_seconds": uptime_seconds,
        },
    )
