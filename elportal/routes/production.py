"""Monthly production data endpoint."""

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from elportal.dependencies import get_production_service
from elportal.logging.config import get_logger
from elportal.services.production_service import ProductionDataService

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["Production"])

CACHE_CONTROL = "public, s-maxage=86400, stale-while-revalidate=172800"


def _failure_details(exc: Exception) -> str:
    """Client-facing summary of an upstream failure, without URLs or bodies."""
    if isinstance(exc, httpx.HTTPStatusError):
        return f"Upstream responded with status {exc.response.status_code}"
    return "Upstream request failed"


@router.get(
    "/monthly-production",
    responses={
        200: {
            "description": "Upstream production data for the trailing 12 months",
            "headers": {
                "X-Cache": {
                    "description": "HIT-KV, HIT-MEMORY or MISS",
                    "schema": {"type": "string"},
                }
            },
        },
        500: {
            "description": "Upstream fetch failed",
            "content": {
                "application/json": {
                    "example": {
                        "error": "Failed to fetch production data",
                        "details": "Upstream responded with status 500",
                    }
                }
            },
        },
    },
)
async def get_monthly_production(
    service: ProductionDataService = Depends(get_production_service),
) -> JSONResponse:
    """
    Production and consumption settlement data for the last 12 months.

    Served from the KV cache, the in-process cache or the upstream API, as
    reported by the ``X-Cache`` header.
    """
    try:
        payload, cache_status = await service.get()
    except Exception as exc:
        logger.error(f"Production data fetch failed: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Failed to fetch production data",
                "details": _failure_details(exc),
            },
        )

    return JSONResponse(
        content=payload,
        headers={"X-Cache": cache_status, "Cache-Control": CACHE_CONTROL},
    )
