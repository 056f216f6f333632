"""Consumption endpoints proxying the Eloverblik metering API."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from elportal.dependencies import get_consumption_service
from elportal.exceptions import ElPortalError, InternalServiceError
from elportal.logging.config import get_logger
from elportal.services.consumption_service import (
    ConsumptionService,
    parse_consumption_request,
    parse_thirdparty_request,
)
from elportal.utils.body import parse_json_body

logger = get_logger(__name__)

router = APIRouter(prefix="/api/eloverblik", tags=["Consumption"])

NO_STORE = {"Cache-Control": "no-store, no-cache, must-revalidate, private"}


def _internal_error(request: Request, exc: Exception) -> InternalServiceError:
    logger.error(
        f"Consumption request failed: {exc}",
        exc_info=exc,
        extra={"correlation_id": getattr(request.state, "correlation_id", None)},
    )
    return InternalServiceError(message="Failed to fetch consumption data")


@router.post("/get-consumption")
async def get_consumption(
    request: Request,
    service: ConsumptionService = Depends(get_consumption_service),
) -> JSONResponse:
    """
    Consumption for the caller's own metering points.

    Body: ``{token, meteringPoints, dateFrom, dateTo, aggregation="Hour"}``
    where ``token`` is a refresh token generated on eloverblik.dk.
    """
    consumption_request = parse_consumption_request(
        parse_json_body(await request.body())
    )
    try:
        payload = await service.get_consumption(consumption_request)
    except ElPortalError:
        raise
    except Exception as exc:
        raise _internal_error(request, exc) from exc
    return JSONResponse(content=payload, headers=NO_STORE)


@router.post("/thirdparty/get-customer-consumption")
async def get_customer_consumption(
    request: Request,
    service: ConsumptionService = Depends(get_consumption_service),
) -> JSONResponse:
    """
    Consumption for a customer who authorized this site on Eloverblik.

    Body: one of ``authorizationId``, ``customerCVR``, ``customerKey`` or
    ``customerId``, plus ``dateFrom``, ``dateTo``, optional
    ``meteringPointIds`` and ``aggregation`` (default ``Day``).
    """
    thirdparty_request = parse_thirdparty_request(parse_json_body(await request.body()))
    try:
        payload = await service.get_customer_consumption(thirdparty_request)
    except ElPortalError:
        raise
    except Exception as exc:
        raise _internal_error(request, exc) from exc
    return JSONResponse(content=payload, headers=NO_STORE)
