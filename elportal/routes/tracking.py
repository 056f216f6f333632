"""API routes for click and pixel tracking."""

from fastapi import APIRouter, Depends, Request, Response, status

from elportal.dependencies import (
    get_click_service,
    get_conversion_service,
    get_pixel_service,
    get_rate_limiter,
)
from elportal.exceptions import ElPortalError, InternalServiceError
from elportal.logging.config import get_logger
from elportal.middleware.rate_limit import RateLimiter
from elportal.schemas.click import TrackClickRequest, TrackClickResponse
from elportal.schemas.conversion import TrackConversionRequest, TrackConversionResponse
from elportal.schemas.pixel import resolve_pixel_event
from elportal.services.click_service import ClickService
from elportal.services.conversion_service import ConversionService
from elportal.services.pixel_service import PIXEL_GIF, PixelService, RequestContext
from elportal.utils.body import parse_json_body
from elportal.utils.client_ip import get_client_ip
from elportal.utils.clock import now_ms

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["Tracking"])

PIXEL_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, private",
    "Pragma": "no-cache",
    "Expires": "0",
    "Timing-Allow-Origin": "*",
}


def _error_example(error_code: str, message: str, details: dict | None = None) -> dict:
    return {
        "content": {
            "application/json": {
                "example": {
                    "status": "error",
                    "error_code": error_code,
                    "message": message,
                    "details": details or {},
                }
            }
        }
    }


@router.post(
    "/track-click",
    response_model=TrackClickResponse,
    status_code=status.HTTP_200_OK,
    openapi_extra={
        "requestBody": {
            "content": {
                "application/json": {
                    "schema": TrackClickRequest.model_json_schema()
                },
                "text/plain": {"schema": {"type": "string"}},
            },
            "required": True,
        }
    },
    responses={
        400: {
            "description": "Missing or invalid fields",
            **_error_example(
                "VALIDATION_ERROR",
                "Missing required fields",
                {"required": ["click_id", "partner_id"], "missing": ["partner_id"]},
            ),
        },
        429: {
            "description": "Rate limit exceeded",
            **_error_example(
                "RATE_LIMIT_EXCEEDED",
                "Rate limit exceeded: 100 requests/minute",
                {"retry_after": 60},
            ),
        },
        500: {
            "description": "Internal server error",
            **_error_example("INTERNAL_ERROR", "Failed to track click"),
        },
    },
)
async def track_click(
    request: Request,
    limiter: RateLimiter = Depends(get_rate_limiter),
    service: ClickService = Depends(get_click_service),
) -> TrackClickResponse:
    """
    Record an affiliate click.

    The body is read as JSON whatever its Content-Type, so
    ``navigator.sendBeacon`` text/plain bodies are accepted.

    Raises:
        RateLimitError: If the client IP is over its limit (429)
        ValidationError: If the body is malformed or incomplete (400)
        InternalServiceError: If the click could not be stored (500)
    """
    await limiter.enforce(get_client_ip(request))

    payload = parse_json_body(await request.body())

    try:
        return await service.record(payload)
    except ElPortalError:
        raise
    except Exception as exc:
        logger.error(
            f"Click tracking failed: {exc}",
            exc_info=exc,
            extra={
                "correlation_id": getattr(request.state, "correlation_id", None),
                "context": {"click_id": payload.get("click_id")},
            },
        )
        raise InternalServiceError(message="Failed to track click") from exc


@router.post(
    "/track-conversion",
    response_model=TrackConversionResponse,
    status_code=status.HTTP_200_OK,
    openapi_extra={
        "requestBody": {
            "content": {
                "application/json": {
                    "schema": TrackConversionRequest.model_json_schema()
                },
                "text/plain": {"schema": {"type": "string"}},
            },
            "required": True,
        }
    },
    responses={
        400: {
            "description": "Missing or invalid click_id",
            **_error_example(
                "VALIDATION_ERROR",
                "Invalid click_id format",
                {"expected_prefix": "dep_"},
            ),
        },
        401: {
            "description": "Webhook delivery without a valid X-Webhook-Secret",
            **_error_example("UNAUTHORIZED", "Invalid webhook secret"),
        },
        404: {
            "description": "Click unknown or older than the attribution window",
            **_error_example("NOT_FOUND", "Click not found or expired"),
        },
        409: {
            "description": "Click already has a conversion",
            **_error_example("CONFLICT", "Conversion already tracked"),
        },
        500: {
            "description": "Internal server error",
            **_error_example("INTERNAL_ERROR", "Failed to track conversion"),
        },
    },
)
async def track_conversion(
    request: Request,
    service: ConversionService = Depends(get_conversion_service),
) -> TrackConversionResponse:
    """
    Record a conversion for a previously tracked click.

    Called by partner backends (``X-Webhook-Secret`` header) and by the
    on-site conversion script. The conversion is attributed to the partner
    of the stored click.
    """
    payload = parse_json_body(await request.body())

    try:
        return await service.record(
            payload, webhook_secret=request.headers.get("x-webhook-secret")
        )
    except ElPortalError:
        raise
    except Exception as exc:
        logger.error(
            f"Conversion tracking failed: {exc}",
            exc_info=exc,
            extra={
                "correlation_id": getattr(request.state, "correlation_id", None),
                "context": {"click_id": payload.get("click_id")},
            },
        )
        raise InternalServiceError(message="Failed to track conversion") from exc


def _request_context(request: Request) -> RequestContext:
    return RequestContext(
        ip=get_client_ip(request),
        user_agent=request.headers.get("user-agent", "unknown"),
        referer=request.headers.get("referer"),
    )


def _pixel_response() -> Response:
    return Response(content=PIXEL_GIF, media_type="image/gif", headers=PIXEL_HEADERS)


PIXEL_RESPONSES = {
    200: {"description": "1x1 transparent GIF", "content": {"image/gif": {}}}
}


@router.get("/tracking/pixel", response_class=Response, responses=PIXEL_RESPONSES)
async def tracking_pixel(
    request: Request,
    service: PixelService = Depends(get_pixel_service),
) -> Response:
    """
    Record a pixel event and answer with a transparent GIF.

    Accepts ``?data=<urlencoded json>`` or discrete ``partner_id``,
    ``event_type``, ``click_id``, ``url`` and ``ref`` parameters. The
    response is always the GIF; tracking failures are only logged.
    """
    try:
        event = resolve_pixel_event(request.query_params, now_ms())
        await service.record(event, _request_context(request))
    except Exception:
        logger.exception(
            "Pixel tracking failed",
            extra={"correlation_id": getattr(request.state, "correlation_id", None)},
        )
    return _pixel_response()


@router.post("/tracking/pixel", response_class=Response, responses=PIXEL_RESPONSES)
async def tracking_pixel_post(
    request: Request,
    service: PixelService = Depends(get_pixel_service),
) -> Response:
    """Store a JSON pixel body as a generic tracking event."""
    try:
        body = parse_json_body(await request.body())
        await service.record_raw(body, _request_context(request))
    except Exception:
        logger.exception(
            "Pixel tracking failed",
            extra={"correlation_id": getattr(request.state, "correlation_id", None)},
        )
    return _pixel_response()
