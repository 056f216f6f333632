"""Retry helper for upstream HTTP calls."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx

from elportal.config import settings
from elportal.logging.config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

RETRYABLE_STATUSES = frozenset({429, 503})


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int | None = None,
    base_delay: float | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run an upstream call, retrying on rate limiting and unavailability.

    Only HTTP 429 and 503 are retried, waiting ``base_delay * 2**(n-1)``
    seconds after attempt n. Any other status error is raised at once; when
    all attempts fail the last error is raised.

    Args:
        operation: Zero-argument coroutine factory; must raise
            httpx.HTTPStatusError for non-2xx responses
        max_attempts: Total attempts (default from settings)
        base_delay: Delay before the first retry in seconds
        sleep: Awaitable sleep, replaceable in tests

    Returns:
        The operation's result
    """
    attempts = max_attempts or settings.upstream_max_attempts
    delay = settings.upstream_backoff_seconds if base_delay is None else base_delay

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if status_code not in RETRYABLE_STATUSES or attempt == attempts:
                raise

            wait_time = delay * 2 ** (attempt - 1)
            logger.warning(
                f"Upstream returned {status_code}. Retry {attempt}/"
                f"{attempts - 1} in {wait_time}s",
                extra={
                    "context": {
                        "url": str(e.request.url),
                        "status_code": status_code,
                        "attempt": attempt,
                    }
                },
            )
            await sleep(wait_time)

    raise RuntimeError("retry_with_backoff called with no attempts")
