"""
In-memory key-value store.

Used for local development (KV_BACKEND=memory) and tests. State lives in the
process and is lost on restart; it is not shared between Lambda instances.
"""

import copy
import fnmatch
import json
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from elportal.store.base import KVStore


@dataclass
class _Entry:
    value: Any
    expires_at: float | None = None


class InMemoryKVStore(KVStore):
    """
    Process-local implementation of :class:`KVStore`.

    Expiry is evaluated lazily against an injectable clock so tests can move
    time forward without sleeping.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        """
        Initialize the store.

        Args:
            clock: Returns the current time in epoch seconds
        """
        self._clock = clock
        self._data: dict[str, _Entry] = {}

    def _live(self, key: str) -> _Entry | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            del self._data[key]
            return None
        return entry

    def _expiry(self, ex: int | None) -> float | None:
        return None if ex is None else self._clock() + ex

    async def get(self, key: str) -> Any | None:
        entry = self._live(key)
        if entry is None:
            return None
        return copy.deepcopy(entry.value)

    async def set(self, key: str, value: Any, ex: int | None = None) -> None:
        # Round-trip through JSON so stored values behave like a remote store
        stored = json.loads(json.dumps(value))
        self._data[key] = _Entry(value=stored, expires_at=self._expiry(ex))

    async def incr(self, key: str, amount: int = 1) -> int:
        entry = self._live(key)
        if entry is None:
            entry = _Entry(value=0)
            self._data[key] = entry
        if not isinstance(entry.value, int):
            raise TypeError(f"Value at {key} is not an integer counter")
        entry.value += amount
        return entry.value

    async def expire(self, key: str, seconds: int, nx: bool = False) -> bool:
        entry = self._live(key)
        if entry is None:
            return False
        if nx and entry.expires_at is not None:
            return False
        entry.expires_at = self._expiry(seconds)
        return True

    async def hincrby(self, key: str, field: str, amount: int = 1) -> int:
        entry = self._live(key)
        if entry is None:
            entry = _Entry(value={})
            self._data[key] = entry
        if not isinstance(entry.value, dict):
            raise TypeError(f"Value at {key} is not a hash")
        entry.value[field] = entry.value.get(field, 0) + amount
        return entry.value[field]

    async def hgetall(self, key: str) -> dict[str, int]:
        entry = self._live(key)
        if entry is None or not isinstance(entry.value, dict):
            return {}
        return dict(entry.value)

    async def keys(self, pattern: str) -> list[str]:
        return sorted(
            key
            for key in list(self._data)
            if fnmatch.fnmatchcase(key, pattern) and self._live(key) is not None
        )

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        """Remove every key (useful for testing)."""
        self._data.clear()
