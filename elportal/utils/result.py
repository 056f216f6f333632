"""
Explicit success/failure values for operations whose errors may be ignored.

Best-effort store work (fail-open rate limiting, cache population) returns a
``Result`` instead of raising, so the decision to continue after a failure is
made, and logged, at the call site.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a best-effort operation.

    Attributes:
        value: Value to use, also populated with the fallback on failure
        error: Exception raised by the operation, None on success
    """

    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: Exception, fallback: T | None = None) -> "Result[T]":
        return cls(value=fallback, error=error)
