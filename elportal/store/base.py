"""Interface of the managed key-value store."""

from abc import ABC, abstractmethod
from typing import Any


class KVStore(ABC):
    """
    Key-value store used for tracking records, counters and caches.

    Values passed to :meth:`set` must be JSON-serialisable and come back from
    :meth:`get` structurally identical. Every mutation is a single-key atomic
    operation; there are no multi-key transactions.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """
        Read a JSON value.

        Args:
            key: Exact key (no patterns)

        Returns:
            Stored value, or None when the key is absent or expired
        """

    @abstractmethod
    async def set(self, key: str, value: Any, ex: int | None = None) -> None:
        """
        Write a JSON value, replacing any previous value (last write wins).

        Args:
            key: Exact key
            value: JSON-serialisable value
            ex: Expiry in seconds, None for no expiry
        """

    @abstractmethod
    async def incr(self, key: str, amount: int = 1) -> int:
        """Atomically increment an integer counter and return its new value."""

    @abstractmethod
    async def expire(self, key: str, seconds: int, nx: bool = False) -> bool:
        """
        Set a key's expiry.

        Args:
            key: Exact key
            seconds: Time to live from now
            nx: Only set the expiry when the key has none yet (Redis EXPIRE NX)

        Returns:
            False when the key does not exist, or has an expiry and nx is set
        """

    @abstractmethod
    async def hincrby(self, key: str, field: str, amount: int = 1) -> int:
        """Atomically increment one field of a hash and return its new value."""

    @abstractmethod
    async def hgetall(self, key: str) -> dict[str, int]:
        """Read every field of a hash (empty dict when absent)."""

    @abstractmethod
    async def keys(self, pattern: str) -> list[str]:
        """
        Enumerate live keys matching a glob pattern.

        Args:
            pattern: Glob pattern such as ``click:dep_*``

        Returns:
            Matching keys in lexicographic order
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key if present."""
