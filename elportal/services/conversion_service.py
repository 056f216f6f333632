"""Conversion webhook: attributing partner-reported sign-ups to clicks."""

import secrets
from typing import Any

from elportal.config import settings
from elportal.exceptions import (
    ConfigurationError,
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from elportal.logging.config import get_logger
from elportal.schemas.conversion import TrackConversionData, TrackConversionResponse
from elportal.services.metrics import bump_daily_metric
from elportal.store.base import KVStore
from elportal.store.keys import (
    CLICK_ID_PREFIX,
    CONVERSIONS_FIELD,
    click_key,
    conversion_key,
)
from elportal.utils.clock import now_ms, to_epoch_ms, utc_now_iso

logger = get_logger(__name__)

WEBHOOK_SOURCE = "webhook"
SCRIPT_SOURCE = "universal_script"

# Fields only the on-site script sends
SCRIPT_FIELDS = ("fingerprint", "session_id", "conversion_type")
# Fields only partner backends send
WEBHOOK_FIELDS = ("customer_id", "contract_length_months")

VALUE_FIELDS = ("contract_value", "conversion_value")

PENDING = "pending"


def detect_source(payload: dict[str, Any], has_webhook_secret: bool) -> str:
    """
    Decide whether a conversion came from a partner backend or the site script.

    An explicit ``source`` wins. Otherwise script-only fields mean
    ``universal_script``, and a secret header or backend-only fields mean
    ``webhook``.
    """
    explicit = payload.get("source")
    if isinstance(explicit, str) and explicit:
        return explicit
    if any(payload.get(name) for name in SCRIPT_FIELDS):
        return SCRIPT_SOURCE
    if has_webhook_secret:
        return WEBHOOK_SOURCE
    if any(payload.get(name) for name in WEBHOOK_FIELDS):
        return WEBHOOK_SOURCE
    return SCRIPT_SOURCE


def reported_value(payload: dict[str, Any]) -> float | None:
    for name in VALUE_FIELDS:
        value = payload.get(name)
        if not value:
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            return None
    return None


def _not_found(reason: str) -> NotFoundError:
    # The reason is only exposed in development
    details = {"reason": reason} if settings.is_development else None
    return NotFoundError(message="Click not found or expired", details=details)


class ConversionService:
    """
    Records conversions against stored clicks.

    A conversion is accepted once per click: the existence check and the
    write are separate single-key operations, so two simultaneous deliveries
    of the same conversion can both succeed.
    """

    def __init__(self, store: KVStore) -> None:
        self.store = store

    def authorize(self, source: str, webhook_secret: str | None) -> None:
        """
        Check the X-Webhook-Secret header of webhook deliveries.

        Raises:
            ConfigurationError: If CONVERSION_WEBHOOK_SECRET is not set (500)
            UnauthorizedError: If the header is missing or wrong (401)
        """
        if source != WEBHOOK_SOURCE:
            return

        expected = settings.conversion_webhook_secret
        if not expected:
            raise ConfigurationError(
                message="Conversion webhook is not configured",
                setting="CONVERSION_WEBHOOK_SECRET",
            )
        if not webhook_secret or not secrets.compare_digest(
            webhook_secret.encode(), expected.encode()
        ):
            raise UnauthorizedError(message="Invalid webhook secret")

    async def _attributed_click(self, click_id: str) -> dict[str, Any]:
        click = await self.store.get(click_key(click_id))
        if not isinstance(click, dict) or not click.get("partner_id"):
            raise _not_found(f"No click stored for {click_id}")

        age_ms = now_ms() - to_epoch_ms(click.get("timestamp"))
        if age_ms > settings.attribution_window_seconds * 1000:
            window_days = settings.attribution_window_seconds // 86400
            raise _not_found(
                f"Click is outside the {window_days}-day attribution window"
            )
        return click

    async def record(
        self, payload: dict[str, Any], webhook_secret: str | None = None
    ) -> TrackConversionResponse:
        """
        Validate, attribute and store a conversion.

        Args:
            payload: Decoded request body
            webhook_secret: Value of the X-Webhook-Secret header

        Returns:
            TrackConversionResponse with the attributed partner

        Raises:
            ValidationError: If click_id is missing or not dep_ prefixed (400)
            UnauthorizedError: If a webhook delivery has a bad secret (401)
            NotFoundError: If the click is unknown or too old (404)
            ConflictError: If the click already has a conversion (409)
        """
        source = detect_source(payload, webhook_secret is not None)
        self.authorize(source, webhook_secret)

        click_id = payload.get("click_id")
        if not click_id:
            raise ValidationError(
                message="Missing required field: click_id",
                details={"required": ["click_id"], "missing": ["click_id"]},
            )
        if not isinstance(click_id, str) or not click_id.startswith(CLICK_ID_PREFIX):
            raise ValidationError(
                message="Invalid click_id format",
                details={"expected_prefix": CLICK_ID_PREFIX},
            )

        click = await self._attributed_click(click_id)
        partner_id = click["partner_id"]

        key = conversion_key(partner_id, click_id)
        if await self.store.get(key) is not None:
            raise ConflictError(
                message="Conversion already tracked",
                details={"click_id": click_id},
            )

        record = {
            **payload,
            "click_id": click_id,
            "partner_id": partner_id,
            "click_timestamp": click.get("timestamp"),
            "conversion_timestamp": now_ms(),
            "source": click.get("source"),
            "metadata": click.get("metadata"),
            "status": PENDING,
        }
        await self.store.set(key, record)
        await bump_daily_metric(self.store, partner_id, CONVERSIONS_FIELD)

        logger.info(
            "Conversion tracked",
            extra={
                "context": {
                    "click_id": click_id,
                    "partner_id": partner_id,
                    "conversion_source": source,
                }
            },
        )

        return TrackConversionResponse(
            data=TrackConversionData(
                click_id=click_id,
                partner_id=partner_id,
                value=reported_value(payload),
                source=source,
            ),
            message="Conversion tracked successfully",
            timestamp=utc_now_iso(),
        )
