"""JSON line logging for the tracking API."""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from elportal.config import settings

REDACTED = "[REDACTED]"

# Context keys whose values are credentials: Eloverblik refresh/access
# tokens, the admin bearer token and the conversion webhook secret
SENSITIVE_KEYS = frozenset(
    {
        "token",
        "refresh_token",
        "access_token",
        "authorization",
        "admin_secret",
        "webhook_secret",
        "x-webhook-secret",
    }
)

NOISY_LOGGERS = ("botocore", "aiobotocore", "aioboto3", "httpx")


def redact(value: Any) -> Any:
    """Replace credential values in (nested) log context with a marker."""
    if isinstance(value, dict):
        return {
            key: REDACTED if str(key).lower() in SENSITIVE_KEYS else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [redact(item) for item in value]
    return value


class JSONFormatter(logging.Formatter):
    """
    Formatter that renders each record as a single JSON line.

    Fields: timestamp (UTC ISO 8601), level, logger, message, correlation_id
    when the request carried one, every key of the ``context`` extra with
    credentials redacted, the formatted exception when present, and
    file/line/function at DEBUG.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if getattr(record, "correlation_id", None):
            log_data["correlation_id"] = record.correlation_id

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            log_data.update(redact(context))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if record.levelno == logging.DEBUG:
            log_data["file"] = record.pathname
            log_data["line"] = record.lineno
            log_data["function"] = record.funcName

        # Decimal values from DynamoDB items are not JSON serialisable
        return json.dumps(log_data, default=str)


def configure_logging() -> None:
    """
    Send JSON lines for every logger to stdout.

    The level comes from LOG_LEVEL. botocore, aioboto3 and httpx are held at
    WARNING or above so store and upstream traffic does not flood the logs.
    Safe to call again on a warm Lambda instance.
    """
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(JSONFormatter())
    root_logger.addHandler(console_handler)

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(max(log_level, logging.WARNING))

    root_logger.info(
        "Logging configured",
        extra={
            "context": {
                "log_level": settings.log_level,
                "environment": settings.environment,
                "kv_backend": settings.kv_backend,
            }
        },
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
