"""Request logging middleware with correlation ID support."""

import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from elportal.logging.config import get_logger
from elportal.utils.client_ip import get_client_ip

logger = get_logger(__name__)


def _get_or_generate_correlation_id(request: Request) -> str:
    """Use the caller's X-Request-ID or mint a new UUID."""
    return request.headers.get("X-Request-ID", str(uuid.uuid4()))


def _request_context(request: Request) -> dict:
    return {
        "method": request.method,
        "path": request.url.path,
        "client_ip": get_client_ip(request),
    }


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log all HTTP requests and responses.

    Features:
    - Adds unique correlation ID (X-Request-ID) to each request
    - Logs request start with method, path, query and client address
    - Logs response with status code, response time, and correlation ID
    - Never logs request headers, so bearer tokens stay out of the logs
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = _get_or_generate_correlation_id(request)
        request.state.correlation_id = correlation_id

        start_time = time.time()
        logger.info(
            "Request started",
            extra={
                "correlation_id": correlation_id,
                "context": {
                    **_request_context(request),
                    "query_params": dict(request.query_params),
                },
            },
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            elapsed_ms = (time.time() - start_time) * 1000
            logger.error(
                "Request failed with exception",
                exc_info=exc,
                extra={
                    "correlation_id": correlation_id,
                    "context": {
                        **_request_context(request),
                        "response_time_ms": round(elapsed_ms, 2),
                    },
                },
            )
            raise

        elapsed_ms = (time.time() - start_time) * 1000
        logger.info(
            "Request completed",
            extra={
                "correlation_id": correlation_id,
                "context": {
                    **_request_context(request),
                    "status_code": response.status_code,
                    "response_time_ms": round(elapsed_ms, 2),
                },
            },
        )

        response.headers["X-Request-ID"] = correlation_id
        return response
