"""Admin endpoints."""

from fastapi import APIRouter, Depends, Request

from elportal.auth.dependencies import require_admin
from elportal.dependencies import get_dashboard_service
from elportal.exceptions import InternalServiceError
from elportal.logging.config import get_logger
from elportal.schemas.dashboard import DashboardResponse
from elportal.services.dashboard_service import DashboardService
from elportal.utils.clock import utc_now_iso

logger = get_logger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.get(
    "/dashboard",
    response_model=DashboardResponse,
    dependencies=[Depends(require_admin)],
)
async def get_dashboard(
    request: Request,
    service: DashboardService = Depends(get_dashboard_service),
) -> DashboardResponse:
    """
    Tracking metrics for the admin dashboard.

    Requires ``Authorization: Bearer <ADMIN_SECRET>``.

    Raises:
        UnauthorizedError: If the token is missing or wrong (401)
        ConfigurationError: If no admin secret is configured (500)
        InternalServiceError: If the metrics could not be built (500)
    """
    try:
        metrics = await service.get_metrics()
    except Exception as exc:
        logger.error(
            f"Dashboard metrics failed: {exc}",
            exc_info=exc,
            extra={"correlation_id": getattr(request.state, "correlation_id", None)},
        )
        raise InternalServiceError(message="Failed to fetch metrics") from exc

    return DashboardResponse(success=True, data=metrics, timestamp=utc_now_iso())
