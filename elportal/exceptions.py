"""Custom exception classes for the ElPortal tracking API."""

from typing import Any


class ElPortalError(Exception):
    """Base exception for the tracking API."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            status_code: HTTP status code
            error_code: Machine-readable error code
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class ValidationError(ElPortalError):
    """Raised when a request body is missing fields or malformed (400)."""

    def __init__(
        self,
        message: str = "Invalid request data",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=400,
            error_code="VALIDATION_ERROR",
            details=details,
        )


class UnauthorizedError(ElPortalError):
    """Raised when authentication fails (401)."""

    def __init__(
        self,
        message: str = "Unauthorized",
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize UnauthorizedError.

        Args:
            message: Error message
            details: Additional error details
        """
        super().__init__(
            message=message,
            status_code=401,
            error_code="UNAUTHORIZED",
            details=details,
        )


class RateLimitError(ElPortalError):
    """Raised when rate limit is exceeded (429)."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: int = 60,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize RateLimitError.

        Args:
            message: Error message
            retry_after: Seconds until retry is allowed
            details: Additional error details
        """
        error_details = details or {}
        error_details["retry_after"] = retry_after
        super().__init__(
            message=message,
            status_code=429,
            error_code="RATE_LIMIT_EXCEEDED",
            details=error_details,
        )
        self.retry_after = retry_after


class ConfigurationError(ElPortalError):
    """Raised when the deployment is missing required configuration (500)."""

    def __init__(
        self,
        message: str = "Server is not configured",
        setting: str | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=500,
            error_code="CONFIGURATION_ERROR",
            details={"setting": setting} if setting else None,
        )


class UpstreamError(ElPortalError):
    """
    Raised when a third-party API answers with a non-2xx status.

    The upstream status code is surfaced as the response status. The upstream
    body is only attached when the caller decides it is safe to expose.
    """

    def __init__(
        self,
        message: str,
        upstream_status: int,
        body: str | None = None,
        hint: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize UpstreamError.

        Args:
            message: Error message
            upstream_status: HTTP status returned by the upstream API
            body: Raw upstream response body, if safe to expose
            hint: Translated, actionable explanation of the status
            details: Additional error details
        """
        error_details = details or {}
        error_details["upstream_status"] = upstream_status
        if hint:
            error_details["hint"] = hint
        if body:
            error_details["upstream_body"] = body
        status_code = upstream_status if 400 <= upstream_status < 600 else 502
        super().__init__(
            message=message,
            status_code=status_code,
            error_code="UPSTREAM_ERROR",
            details=error_details,
        )
        self.upstream_status = upstream_status
        self.body = body


class NotFoundError(ElPortalError):
    """Raised when a requested upstream resource does not exist (404)."""

    def __init__(
        self,
        message: str = "Not found",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND",
            details=details,
        )


class ConflictError(ElPortalError):
    """Raised when a record that may only be written once already exists (409)."""

    def __init__(
        self,
        message: str = "Conflict",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=409,
            error_code="CONFLICT",
            details=details,
        )


class ServiceUnavailableError(ElPortalError):
    """Raised when a dependent service is unavailable (503)."""

    def __init__(
        self,
        message: str = "Service temporarily unavailable",
        service: str | None = None,
        retry_after: int = 60,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize ServiceUnavailableError.

        Args:
            message: Error message
            service: Name of the unavailable service
            retry_after: Seconds until retry is recommended
            details: Additional error details
        """
        error_details = details or {}
        error_details["retry_after"] = retry_after
        if service:
            error_details["service"] = service
        super().__init__(
            message=message,
            status_code=503,
            error_code="SERVICE_UNAVAILABLE",
            details=error_details,
        )


class InternalServiceError(ElPortalError):
    """Raised to turn an unexpected failure into a fixed, generic 500."""

    def __init__(self, message: str = "An internal error occurred") -> None:
        super().__init__(
            message=message,
            status_code=500,
            error_code="INTERNAL_ERROR",
        )
