"""Per-IP rate limiting on top of the key-value store."""

from elportal.config import settings
from elportal.exceptions import RateLimitError
from elportal.logging.config import get_logger
from elportal.store.base import KVStore
from elportal.store.keys import rate_limit_key
from elportal.utils.result import Result

logger = get_logger(__name__)


class RateLimiter:
    """
    Fixed-window request counter per client IP.

    The first request of a window creates ``rate_limit:clicks:<ip>`` and sets
    its expiry; the window is not sliding, so a burst straddling a window
    boundary can admit up to twice the limit in a short interval.
    """

    def __init__(
        self,
        store: KVStore,
        limit: int | None = None,
        window_seconds: int | None = None,
    ) -> None:
        """
        Initialize rate limiter.

        Args:
            store: Key-value store holding the counters
            limit: Requests allowed per window (default from settings)
            window_seconds: Window length (default from settings)
        """
        self.store = store
        self.limit = limit or settings.click_rate_limit_per_minute
        self.window_seconds = window_seconds or settings.rate_limit_window_seconds

    async def check(self, client_ip: str) -> Result[bool]:
        """
        Count a request and decide whether it is allowed.

        Args:
            client_ip: Client address used as the counter key

        Returns:
            Result whose value is True when the request is within the limit.
            A store failure yields ``value=True`` with the error attached so
            the caller can let the request through.
        """
        key = rate_limit_key(client_ip)
        try:
            count = await self.store.incr(key)
            if count == 1:
                await self.store.expire(key, self.window_seconds)
        except Exception as exc:
            return Result.failure(exc, fallback=True)
        return Result.success(count <= self.limit)

    async def enforce(self, client_ip: str) -> None:
        """
        Raise when the client is over the limit; fail open on store errors.

        Raises:
            RateLimitError: If the limit is exceeded
        """
        decision = await self.check(client_ip)
        if not decision.ok:
            logger.warning(
                "Rate limit check failed, allowing request",
                exc_info=decision.error,
                extra={"context": {"client_ip": client_ip}},
            )
        if not decision.value:
            raise RateLimitError(
                message=f"Rate limit exceeded: {self.limit} requests/minute",
                retry_after=self.window_seconds,
                details={
                    "limit": self.limit,
                    "window_seconds": self.window_seconds,
                },
            )
