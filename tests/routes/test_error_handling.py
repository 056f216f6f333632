"""Error envelope tests for the exception handlers."""

import json
from unittest.mock import AsyncMock

import pytest
from botocore.exceptions import ClientError
from fastapi import Request
from fastapi.exceptions import RequestValidationError

from elportal.exceptions import (
    ConfigurationError,
    RateLimitError,
    ServiceUnavailableError,
    UnauthorizedError,
    UpstreamError,
)
from elportal.handlers.exception_handler import (
    elportal_exception_handler,
    generic_exception_handler,
    validation_exception_handler,
)


@pytest.fixture
def mock_request():
    """Request with a correlation ID set by the logging middleware."""
    request = AsyncMock(spec=Request)
    request.state.correlation_id = "test-correlation-id"
    request.method = "POST"
    request.url.path = "/api/track-click"
    return request


@pytest.mark.asyncio
async def test_validation_error_envelope(mock_request) -> None:
    """Test that validation errors drop the body prefix and keep correlation ID."""
    exc = RequestValidationError(
        errors=[
            {"loc": ("body", "click_id"), "msg": "field required", "type": "missing"},
            {"loc": ("body", "timestamp"), "msg": "not an int", "type": "int_type"},
        ]
    )

    response = await validation_exception_handler(mock_request, exc)

    assert response.status_code == 400
    data = json.loads(response.body)
    assert data["status"] == "error"
    assert data["error_code"] == "VALIDATION_ERROR"
    assert data["correlation_id"] == "test-correlation-id"
    assert data["message"] == "click_id: Field is required (and 1 more errors)"
    fields = [e["field"] for e in data["details"]["validation_errors"]]
    assert fields == ["click_id", "timestamp"]


@pytest.mark.asyncio
async def test_rate_limit_error_includes_retry_after_header(mock_request) -> None:
    """Test that rate limit errors include Retry-After header."""
    exc = RateLimitError(message="Rate limit exceeded: 100 requests/minute", retry_after=45)

    response = await elportal_exception_handler(mock_request, exc)

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "45"
    body = json.loads(response.body)
    assert body["error_code"] == "RATE_LIMIT_EXCEEDED"
    assert body["details"]["retry_after"] == 45


@pytest.mark.asyncio
async def test_upstream_error_keeps_upstream_status(mock_request) -> None:
    """Test that Eloverblik statuses pass through with the hint."""
    exc = UpstreamError(
        message="Failed to fetch consumption data",
        upstream_status=429,
        hint="Wait a minute",
    )

    response = await elportal_exception_handler(mock_request, exc)

    assert response.status_code == 429
    body = json.loads(response.body)
    assert body["error_code"] == "UPSTREAM_ERROR"
    assert body["details"] == {"upstream_status": 429, "hint": "Wait a minute"}
    assert body["message"] == "Failed to fetch consumption data. Wait a minute"
    assert response.headers["X-Upstream-Status"] == "429"


@pytest.mark.asyncio
async def test_upstream_error_without_hint_keeps_message(mock_request) -> None:
    exc = UpstreamError(message="Invalid token response", upstream_status=502)

    response = await elportal_exception_handler(mock_request, exc)

    assert response.status_code == 502
    assert json.loads(response.body)["message"] == "Invalid token response"


@pytest.mark.asyncio
async def test_unreachable_eloverblik_sets_retry_after(mock_request) -> None:
    exc = ServiceUnavailableError(service="eloverblik", retry_after=30)

    response = await elportal_exception_handler(mock_request, exc)

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "30"
    assert json.loads(response.body)["details"]["service"] == "eloverblik"


@pytest.mark.asyncio
async def test_configuration_error_names_setting(mock_request) -> None:
    exc = ConfigurationError(setting="ADMIN_SECRET")

    response = await elportal_exception_handler(mock_request, exc)

    assert response.status_code == 500
    assert json.loads(response.body)["details"] == {"setting": "ADMIN_SECRET"}


@pytest.mark.asyncio
async def test_connection_error_returns_503(mock_request) -> None:
    """Test that store connectivity errors return 503."""
    exc = ConnectionError("Unable to connect to DynamoDB")

    response = await generic_exception_handler(mock_request, exc)

    assert response.status_code == 503
    body = json.loads(response.body)
    assert body["error_code"] == "SERVICE_UNAVAILABLE"
    assert body["details"]["retry_after"] == 60
    assert response.headers["Retry-After"] == "60"


@pytest.mark.asyncio
async def test_dynamodb_throttling_returns_503(mock_request) -> None:
    """Test that throttled store calls are reported as temporary."""
    exc = ClientError(
        {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow"}},
        "UpdateItem",
    )

    response = await generic_exception_handler(mock_request, exc)

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_other_dynamodb_errors_are_500(mock_request) -> None:
    exc = ClientError(
        {"Error": {"Code": "ValidationException", "Message": "bad key"}}, "GetItem"
    )

    response = await generic_exception_handler(mock_request, exc)

    assert response.status_code == 500


@pytest.mark.asyncio
async def test_error_text_mentioning_connection_is_not_503(mock_request) -> None:
    """Test that only the exception type decides, not words in its message."""
    exc = ValueError("connection string is malformed")

    response = await generic_exception_handler(mock_request, exc)

    assert response.status_code == 500


@pytest.mark.asyncio
async def test_unexpected_error_is_generic_500(mock_request) -> None:
    """Test that internal details are not leaked."""
    exc = ValueError("secret internal state")

    response = await generic_exception_handler(mock_request, exc)

    assert response.status_code == 500
    body = json.loads(response.body)
    assert body["error_code"] == "INTERNAL_ERROR"
    assert body["correlation_id"] == "test-correlation-id"
    assert "secret" not in body["message"]


@pytest.mark.asyncio
async def test_error_response_without_correlation_id() -> None:
    """Test that errors work even without correlation ID."""
    mock_request = AsyncMock(spec=Request)
    mock_request.state = AsyncMock()
    type(mock_request.state).correlation_id = property(lambda self: None)

    response = await elportal_exception_handler(mock_request, UnauthorizedError())

    assert response.status_code == 401
    assert "correlation_id" not in json.loads(response.body)
