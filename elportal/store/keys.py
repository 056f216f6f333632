"""Key families used in the key-value store."""

from datetime import UTC, date, datetime

CLICK_ID_PREFIX = "dep_"


def today_iso() -> str:
    """Current UTC date as YYYY-MM-DD."""
    return datetime.now(UTC).date().isoformat()


def _day(day: date | str | None) -> str:
    if day is None:
        return today_iso()
    if isinstance(day, date):
        return day.isoformat()
    return day


def click_key(click_id: str) -> str:
    return f"click:{click_id}"


def daily_clicks_key(partner_id: str, day: date | str | None = None) -> str:
    return f"clicks:daily:{_day(day)}:{partner_id}"


def daily_clicks_pattern(day: date | str | None = None) -> str:
    return f"clicks:daily:{_day(day)}:*"


def daily_metrics_key(partner_id: str, day: date | str | None = None) -> str:
    return f"metrics:daily:{_day(day)}:{partner_id}"


def daily_metrics_pattern(day: date | str | None = None) -> str:
    return f"metrics:daily:{_day(day)}:*"


def conversion_key(partner_id: str, click_id: str) -> str:
    return f"conversion:{partner_id}:{click_id}"


def partner_config_key(partner_id: str) -> str:
    return f"partner_config:{partner_id}"


def tracking_event_key(partner_id: str, epoch_ms: int, suffix: str) -> str:
    return f"event:{partner_id}:{epoch_ms}:{suffix}"


def rate_limit_key(client_ip: str) -> str:
    return f"rate_limit:clicks:{client_ip}"


def production_key(start: str, end: str) -> str:
    return f"production:{start}:{end}"


CLICK_PATTERN = f"click:{CLICK_ID_PREFIX}*"
CONVERSION_PATTERN = "conversion:*"

# Hash fields of the daily metrics family
PAGE_VIEWS_FIELD = "page_views"
CONVERSIONS_FIELD = "conversions"
