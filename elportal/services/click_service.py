"""Click recording: validation and persistence of affiliate clicks."""

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from elportal.config import settings
from elportal.exceptions import ValidationError
from elportal.logging.config import get_logger
from elportal.models.tracking import ClickEvent
from elportal.schemas.click import TrackClickData, TrackClickResponse
from elportal.store.base import KVStore
from elportal.store.keys import CLICK_ID_PREFIX, click_key, daily_clicks_key
from elportal.utils.clock import now_ms, utc_now_iso

logger = get_logger(__name__)

REQUIRED_FIELDS = ["click_id", "partner_id"]


class ClickService:
    """
    Service layer for click tracking.

    The click record and the daily counter are separate single-key writes;
    a failure between them leaves the counter short of the stored records.
    """

    def __init__(self, store: KVStore) -> None:
        """
        Initialize ClickService.

        Args:
            store: Key-value store receiving click records and counters
        """
        self.store = store

    def build_click(self, payload: dict[str, Any]) -> ClickEvent:
        """
        Validate a click payload and apply defaults.

        Args:
            payload: Decoded request body

        Returns:
            ClickEvent ready to store

        Raises:
            ValidationError: On missing fields, a click_id without the dep_
                prefix, or malformed optional fields
        """
        missing = [name for name in REQUIRED_FIELDS if not payload.get(name)]
        if missing:
            raise ValidationError(
                message="Missing required fields",
                details={"required": REQUIRED_FIELDS, "missing": missing},
            )

        click_id = payload["click_id"]
        if not isinstance(click_id, str) or not click_id.startswith(CLICK_ID_PREFIX):
            raise ValidationError(
                message="Invalid click_id format",
                details={"expected_prefix": CLICK_ID_PREFIX},
            )

        data = dict(payload)
        if data.get("timestamp") is None:
            data["timestamp"] = now_ms()

        try:
            return ClickEvent.model_validate(data)
        except PydanticValidationError as exc:
            raise ValidationError(
                message="Invalid click data",
                details={
                    "validation_errors": [
                        {
                            "field": ".".join(str(loc) for loc in error["loc"]),
                            "message": error["msg"],
                        }
                        for error in exc.errors()
                    ]
                },
            ) from exc

    async def store_click(self, click: ClickEvent) -> None:
        """
        Persist a click and bump the partner's daily counter.

        The counter gets its 30-day expiry on the increment that creates it.
        """
        await self.store.set(
            click_key(click.click_id), click.to_store(), ex=settings.click_ttl_seconds
        )

        counter_key = daily_clicks_key(click.partner_id)
        count = await self.store.incr(counter_key)
        if count == 1:
            await self.store.expire(counter_key, settings.daily_counter_ttl_seconds)

    async def record(self, payload: dict[str, Any]) -> TrackClickResponse:
        """
        Validate and persist a click.

        Args:
            payload: Decoded request body

        Returns:
            TrackClickResponse echoing the click id
        """
        click = self.build_click(payload)
        await self.store_click(click)

        logger.info(
            "Click tracked",
            extra={
                "context": {
                    "click_id": click.click_id,
                    "partner_id": click.partner_id,
                }
            },
        )

        return TrackClickResponse(
            success=True,
            data=TrackClickData(click_id=click.click_id),
            message="Click tracked successfully",
            timestamp=utc_now_iso(),
        )
