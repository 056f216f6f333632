"""
Cached access to the trailing 12-month production data.

Lookups go KV store, then the in-process map, then upstream. Concurrent
misses for the same window share one upstream fetch.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, date, datetime
from typing import Any

from elportal.clients.energidataservice import EnergiDataServiceClient
from elportal.config import settings
from elportal.logging.config import get_logger
from elportal.store.base import KVStore
from elportal.store.keys import production_key
from elportal.utils.result import Result
from elportal.utils.retry import retry_with_backoff

logger = get_logger(__name__)

HIT_KV = "HIT-KV"
HIT_MEMORY = "HIT-MEMORY"
MISS = "MISS"

# Upper bound on windows held in the in-process map
MAX_MEMORY_ENTRIES = 50


def trailing_year_window(today: date) -> tuple[str, str]:
    """
    Twelve-month window ending today.

    Feb 29 has no counterpart in the previous year and starts the window on
    Mar 1 instead.
    """
    try:
        start = today.replace(year=today.year - 1)
    except ValueError:
        start = date(today.year - 1, 3, 1)
    return start.isoformat(), today.isoformat()


class ProductionDataService:
    """
    Read-through cache for production data.

    One instance owns its in-process map and in-flight table, so the app
    creates one per process and tests create their own.
    """

    def __init__(
        self,
        store: KVStore,
        client: EnergiDataServiceClient,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        ttl_seconds: int | None = None,
        linger_seconds: float | None = None,
    ) -> None:
        self.store = store
        self.client = client
        self._clock = clock
        self._sleep = sleep
        self.ttl_seconds = ttl_seconds or settings.production_cache_ttl_seconds
        self.linger_seconds = (
            settings.inflight_linger_seconds if linger_seconds is None else linger_seconds
        )
        self._memory: dict[str, tuple[float, Any]] = {}
        self._inflight: dict[str, asyncio.Future] = {}

    async def _read_kv(self, key: str) -> Result[Any]:
        try:
            return Result.success(await self.store.get(key))
        except Exception as exc:
            return Result.failure(exc)

    async def _write_kv(self, key: str, payload: Any) -> Result[None]:
        try:
            await self.store.set(key, payload, ex=self.ttl_seconds)
        except Exception as exc:
            return Result.failure(exc)
        return Result.success()

    def _remember(self, key: str, payload: Any) -> None:
        """Store a window in the in-process map, dropping expired and oldest entries."""
        now = self._clock()
        expired = [
            name
            for name, (stored_at, _) in self._memory.items()
            if now - stored_at >= self.ttl_seconds
        ]
        for name in expired:
            del self._memory[name]

        self._memory.pop(key, None)
        self._memory[key] = (now, payload)
        while len(self._memory) > MAX_MEMORY_ENTRIES:
            del self._memory[next(iter(self._memory))]

    def _read_memory(self, key: str) -> Any | None:
        entry = self._memory.get(key)
        if entry is None:
            return None
        stored_at, payload = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            del self._memory[key]
            return None
        return payload

    async def _load(self, start: str, end: str, memory_key: str, kv_key: str) -> Any:
        logger.info(
            "Fetching production data from upstream",
            extra={"context": {"start": start, "end": end}},
        )
        payload = await retry_with_backoff(
            lambda: self.client.fetch_production(start, end), sleep=self._sleep
        )

        self._remember(memory_key, payload)
        result = await self._write_kv(kv_key, payload)
        if not result.ok:
            logger.warning(
                f"Production cache write failed: {result.error}",
                extra={"context": {"key": kv_key}},
            )
        return payload

    def _release(self, key: str, task: asyncio.Future) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    def _on_settled(self, key: str, task: asyncio.Future) -> None:
        loop = asyncio.get_running_loop()
        loop.call_later(self.linger_seconds, self._release, key, task)

    async def _deduplicated(
        self, key: str, factory: Callable[[], Awaitable[Any]]
    ) -> Any:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._inflight[key] = task
            task.add_done_callback(lambda done: self._on_settled(key, done))
        return await asyncio.shield(task)

    async def get(self, today: date | None = None) -> tuple[Any, str]:
        """
        Production data for the trailing 12 months.

        Args:
            today: Window end date (default: today in UTC)

        Returns:
            Tuple of (upstream payload, cache status) where the status is
            ``HIT-KV``, ``HIT-MEMORY`` or ``MISS``

        Raises:
            httpx.HTTPError: When the upstream fetch fails after retries
        """
        start, end = trailing_year_window(today or datetime.now(UTC).date())
        kv_key = production_key(start, end)

        cached = await self._read_kv(kv_key)
        if not cached.ok:
            logger.warning(
                f"Production cache read failed: {cached.error}",
                extra={"context": {"key": kv_key}},
            )
        elif cached.value is not None:
            return cached.value, HIT_KV

        memory_key = f"{start}_{end}"
        payload = self._read_memory(memory_key)
        if payload is not None:
            return payload, HIT_MEMORY

        payload = await self._deduplicated(
            memory_key, lambda: self._load(start, end, memory_key, kv_key)
        )
        return payload, MISS

    @property
    def inflight_keys(self) -> list[str]:
        return list(self._inflight)

    @property
    def cached_windows(self) -> list[str]:
        return list(self._memory)
