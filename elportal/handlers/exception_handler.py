"""
Exception handlers producing the JSON error envelope.

Every error body has the shape::

    {"status": "error", "error_code": ..., "message": ..., "details": {...},
     "correlation_id": ...}

The pixel and monthly-production endpoints never reach these handlers: the
pixel always answers with its GIF and monthly-production renders its own
``{"error", "details"}`` body.
"""

from typing import Any

import httpx
from botocore.exceptions import (
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from elportal.exceptions import (
    ElPortalError,
    RateLimitError,
    ServiceUnavailableError,
    UpstreamError,
)
from elportal.logging.config import get_logger

logger = get_logger(__name__)

STORE_RETRY_AFTER_SECONDS = 60

# DynamoDB error codes that mean "try again", not "your request is wrong"
STORE_UNAVAILABLE_CODES = frozenset(
    {
        "ProvisionedThroughputExceededException",
        "RequestLimitExceeded",
        "ThrottlingException",
        "InternalServerError",
        "ServiceUnavailable",
    }
)


def create_error_response(
    error_code: str,
    message: str,
    status_code: int,
    details: dict[str, Any] | None = None,
    correlation_id: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """
    Build the error envelope.

    Args:
        error_code: Machine-readable error code
        message: Human-readable error message
        status_code: HTTP status code
        details: Additional error details
        correlation_id: Request correlation ID, omitted from the body when None
        headers: Extra response headers

    Returns:
        JSONResponse with the envelope
    """
    content = {
        "status": "error",
        "error_code": error_code,
        "message": message,
        "details": details or {},
    }

    if correlation_id:
        content["correlation_id"] = correlation_id

    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _correlation_id(request: Request) -> str | None:
    return getattr(request.state, "correlation_id", None)


def _headers_for(exc: ElPortalError) -> dict[str, str]:
    if isinstance(exc, RateLimitError):
        return {"Retry-After": str(exc.retry_after)}
    if isinstance(exc, ServiceUnavailableError):
        return {"Retry-After": str(exc.details["retry_after"])}
    if isinstance(exc, UpstreamError):
        return {"X-Upstream-Status": str(exc.upstream_status)}
    return {}


def _message_for(exc: ElPortalError) -> str:
    # Eloverblik failures carry a translated hint the portal shows verbatim
    hint = exc.details.get("hint") if isinstance(exc, UpstreamError) else None
    if hint:
        return f"{exc.message}. {hint}"
    return exc.message


async def elportal_exception_handler(
    request: Request, exc: ElPortalError
) -> JSONResponse:
    """
    Render an ElPortalError.

    Upstream failures are logged at WARNING with the upstream status, server
    faults at ERROR; client errors are not logged here.
    """
    correlation_id = _correlation_id(request)
    log_context = {"path": request.url.path, "error_code": exc.error_code}

    if isinstance(exc, UpstreamError):
        logger.warning(
            f"Upstream call failed: {exc.message}",
            extra={
                "correlation_id": correlation_id,
                "context": {**log_context, "upstream_status": exc.upstream_status},
            },
        )
    elif exc.status_code >= 500:
        logger.error(
            f"{type(exc).__name__}: {exc.message}",
            extra={"correlation_id": correlation_id, "context": log_context},
        )

    return create_error_response(
        error_code=exc.error_code,
        message=_message_for(exc),
        status_code=exc.status_code,
        details=exc.details,
        correlation_id=correlation_id,
        headers=_headers_for(exc),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Render FastAPI request validation errors as a 400.

    The message names the first offending field; every error is listed in
    ``details.validation_errors``.
    """
    details: dict[str, Any] = {"validation_errors": []}
    error_messages = []

    for error in exc.errors():
        # Field path without the 'body'/'query' location prefix
        field_parts = [
            str(loc) for loc in error["loc"] if loc not in ("body", "query")
        ]
        field = ".".join(field_parts) if field_parts else "request"

        msg = error["msg"]
        error_type = error["type"]
        if error_type == "missing":
            msg = "Field is required"
        elif error_type == "value_error":
            msg = f"Invalid value: {msg}"

        details["validation_errors"].append(
            {"field": field, "message": msg, "type": error_type}
        )
        error_messages.append(f"{field}: {msg}")

    summary = error_messages[0] if error_messages else "Invalid request data"
    if len(error_messages) > 1:
        summary += f" (and {len(error_messages) - 1} more errors)"

    return create_error_response(
        error_code="VALIDATION_ERROR",
        message=summary,
        status_code=status.HTTP_400_BAD_REQUEST,
        details=details,
        correlation_id=_correlation_id(request),
    )


def is_transient(exc: Exception) -> bool:
    """
    Whether an unhandled error means a dependency is temporarily unreachable.

    Covers network failures talking to DynamoDB or the upstream APIs and
    DynamoDB throttling. Everything else is treated as a bug.
    """
    if isinstance(
        exc,
        (
            ConnectionError,
            TimeoutError,
            httpx.TransportError,
            EndpointConnectionError,
            ConnectTimeoutError,
            ReadTimeoutError,
        ),
    ):
        return True
    if isinstance(exc, ClientError):
        code = exc.response.get("Error", {}).get("Code")
        return code in STORE_UNAVAILABLE_CODES
    return False


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Render anything not raised as an ElPortalError.

    The traceback is logged; the client gets a 503 with Retry-After for
    transient dependency failures and a generic 500 otherwise.
    """
    correlation_id = _correlation_id(request)

    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {str(exc)}",
        exc_info=exc,
        extra={
            "correlation_id": correlation_id,
            "context": {
                "exception_type": type(exc).__name__,
                "method": request.method,
                "path": request.url.path,
            },
        },
    )

    if is_transient(exc):
        return create_error_response(
            error_code="SERVICE_UNAVAILABLE",
            message="Service temporarily unavailable. Please try again later.",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details={"retry_after": STORE_RETRY_AFTER_SECONDS},
            correlation_id=correlation_id,
            headers={"Retry-After": str(STORE_RETRY_AFTER_SECONDS)},
        )

    return create_error_response(
        error_code="INTERNAL_ERROR",
        message="An internal error occurred.",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        correlation_id=correlation_id,
    )
