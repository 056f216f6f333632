"""Time helpers shared by the tracking services."""

import time
from datetime import UTC, datetime
from typing import Any


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


def utc_now_iso() -> str:
    """Current UTC time as ISO 8601 with millisecond precision and a Z suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def millis_to_date_iso(epoch_ms: int) -> str:
    """UTC calendar date (YYYY-MM-DD) of an epoch-milliseconds timestamp."""
    return datetime.fromtimestamp(epoch_ms / 1000, UTC).date().isoformat()


def to_epoch_ms(value: Any) -> int:
    """
    Coerce a stored timestamp to epoch milliseconds.

    Records written by older clients carry ISO strings; anything that
    cannot be read becomes 0.
    """
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(float(text))
        except ValueError:
            pass
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return 0
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return int(parsed.timestamp() * 1000)
    return 0
