"""Tests for retry_with_backoff."""

from unittest.mock import AsyncMock

import httpx
import pytest

from elportal.utils.retry import retry_with_backoff


def status_error(status_code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://upstream.test/data")
    response = httpx.Response(status_code, request=request)
    return httpx.HTTPStatusError(
        f"HTTP {status_code}", request=request, response=response
    )


class RecordingSleep:
    """Collects requested delays instead of sleeping."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.mark.asyncio
async def test_success_on_first_attempt(sleep):
    """Test that a successful call is not retried."""
    operation = AsyncMock(return_value={"ok": True})

    result = await retry_with_backoff(operation, sleep=sleep)

    assert result == {"ok": True}
    assert operation.await_count == 1
    assert sleep.delays == []


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [429, 503])
async def test_retryable_status_then_success(sleep, status_code):
    """Test exponential delays before a later success."""
    operation = AsyncMock(
        side_effect=[status_error(status_code), status_error(status_code), "data"]
    )

    result = await retry_with_backoff(
        operation, max_attempts=3, base_delay=1.0, sleep=sleep
    )

    assert result == "data"
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_last_error_raised_after_all_attempts(sleep):
    """Test that exhausting attempts re-raises the final error."""
    last = status_error(503)
    operation = AsyncMock(side_effect=[status_error(429), status_error(503), last])

    with pytest.raises(httpx.HTTPStatusError) as exc_info:
        await retry_with_backoff(operation, max_attempts=3, base_delay=1.0, sleep=sleep)

    assert exc_info.value is last
    assert operation.await_count == 3
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [400, 401, 404, 500])
async def test_other_statuses_fail_immediately(sleep, status_code):
    """Test that non-retryable statuses are not retried."""
    operation = AsyncMock(side_effect=status_error(status_code))

    with pytest.raises(httpx.HTTPStatusError):
        await retry_with_backoff(operation, max_attempts=3, sleep=sleep)

    assert operation.await_count == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_non_http_errors_propagate(sleep):
    """Test that transport errors are left to the caller."""
    operation = AsyncMock(side_effect=httpx.ConnectError("refused"))

    with pytest.raises(httpx.ConnectError):
        await retry_with_backoff(operation, sleep=sleep)

    assert operation.await_count == 1
