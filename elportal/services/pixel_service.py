"""Pixel event recording."""

import uuid
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

from elportal.config import settings
from elportal.logging.config import get_logger
from elportal.models.tracking import (
    ClickEvent,
    ClientInfo,
    PartnerConfig,
    TrackingEvent,
    TrackingEventData,
)
from elportal.schemas.pixel import PixelEvent
from elportal.services.metrics import bump_daily_metric
from elportal.store.base import KVStore
from elportal.store.keys import (
    CONVERSIONS_FIELD,
    PAGE_VIEWS_FIELD,
    click_key,
    conversion_key,
    partner_config_key,
    tracking_event_key,
)
from elportal.utils.clock import now_ms

logger = get_logger(__name__)

CONVERSION_EVENT = "conversion"
LANDING_EVENT = "landing"
PIXEL_CLICK_SOURCE = "pixel_tracking"

# 1x1 transparent GIF, 43 bytes
PIXEL_GIF = (
    b"GIF89a\x01\x00\x01\x00\x80\x00\x00\x00\x00\x00\xff\xff\xff"
    b"!\xf9\x04\x01\x00\x00\x00\x00"
    b",\x00\x00\x00\x00\x01\x00\x01\x00\x00\x02\x01D\x00;"
)


@dataclass(frozen=True)
class RequestContext:
    """Request attributes copied into tracking events."""

    ip: str
    user_agent: str
    referer: str | None = None

    @property
    def referer_host(self) -> str | None:
        if not self.referer:
            return None
        try:
            return urlparse(self.referer).hostname
        except ValueError:
            return None

    @property
    def referer_domain(self) -> str:
        return self.referer_host or "unknown"


def _event_suffix() -> str:
    return uuid.uuid4().hex[:12]


class PixelService:
    """
    Records pixel hits as tracking events, daily metrics, conversions and
    landing clicks.

    Every write is an independent single-key operation. Callers are expected
    to swallow errors: a pixel response never depends on the outcome.
    """

    def __init__(self, store: KVStore) -> None:
        self.store = store

    async def partner_domain_allowed(
        self, partner_id: str, context: RequestContext
    ) -> bool:
        """
        Whether a partner may send events from the referring domain.

        The partner needs an active ``partner_config`` record and, when it
        lists a domain whitelist, a matching referer. Store or record errors
        count as not allowed.
        """
        try:
            raw = await self.store.get(partner_config_key(partner_id))
            if raw is None:
                return False
            config = PartnerConfig.model_validate(raw)
        except Exception as exc:
            logger.warning(
                f"Partner config unreadable, rejecting pixel event: {exc}",
                extra={"context": {"partner_id": partner_id}},
            )
            return False
        return config.is_active and config.allows_domain(context.referer_host)

    async def _accepts(self, partner_id: str, context: RequestContext) -> bool:
        if not settings.pixel_domain_validation:
            return True
        if await self.partner_domain_allowed(partner_id, context):
            return True
        logger.info(
            "Pixel event dropped: partner or domain not allowed",
            extra={
                "context": {
                    "partner_id": partner_id,
                    "partner_domain": context.referer_domain,
                }
            },
        )
        return False

    async def _bump_metric(self, partner_id: str, field: str) -> None:
        await bump_daily_metric(self.store, partner_id, field)

    async def _store_event(self, event: TrackingEvent, at_ms: int) -> str:
        key = tracking_event_key(event.partner_id, at_ms, _event_suffix())
        await self.store.set(key, event.to_store(), ex=settings.tracking_event_ttl_seconds)
        return key

    async def record(self, event: PixelEvent, context: RequestContext) -> None:
        """
        Store a pixel event and update the partner's counters.

        Events without a partner_id are ignored, as are events rejected by
        partner domain validation when PIXEL_DOMAIN_VALIDATION is on.

        Args:
            event: Canonical pixel event
            context: Client address, user agent and referer
        """
        if not event.partner_id:
            return
        if not await self._accepts(event.partner_id, context):
            return

        received_ms = now_ms()
        tracking_event = TrackingEvent(
            type=event.event_type or "track",
            partner_id=event.partner_id,
            partner_domain=context.referer_domain,
            data=TrackingEventData(
                click_id=event.click_id,
                session_id=event.session_id,
                page_url=event.page_url or context.referer,
                timestamp=event.timestamp or received_ms,
                event_type=event.event_type,
            ).model_dump(mode="json"),
            client_info=ClientInfo(
                ip=context.ip,
                user_agent=context.user_agent,
                timestamp=received_ms,
            ),
        )
        await self._store_event(tracking_event, received_ms)

        if event.event_type == CONVERSION_EVENT:
            await self._bump_metric(event.partner_id, CONVERSIONS_FIELD)
            if event.click_id:
                record = {**event.tracking_fields(), "conversion_time": received_ms}
                await self.store.set(
                    conversion_key(event.partner_id, event.click_id),
                    record,
                    ex=settings.conversion_ttl_seconds,
                )
        else:
            await self._bump_metric(event.partner_id, PAGE_VIEWS_FIELD)

        if event.event_type == LANDING_EVENT and event.click_id:
            click = ClickEvent(
                click_id=event.click_id,
                partner_id=event.partner_id,
                timestamp=received_ms,
                source=PIXEL_CLICK_SOURCE,
            )
            await self.store.set(
                click_key(click.click_id), click.to_store(), ex=settings.click_ttl_seconds
            )

    async def record_raw(self, body: dict[str, Any], context: RequestContext) -> None:
        """
        Store a POSTed pixel body as a generic tracking event (no counters).

        Args:
            body: Decoded JSON body
            context: Client address, user agent and referer
        """
        partner_id = body.get("partner_id")
        if not partner_id:
            return
        if not await self._accepts(str(partner_id), context):
            return

        received_ms = now_ms()
        tracking_event = TrackingEvent(
            type=str(body.get("event_type") or "track"),
            partner_id=str(partner_id),
            partner_domain=context.referer_domain,
            data=body,
            client_info=ClientInfo(
                ip=context.ip,
                user_agent=context.user_agent,
                timestamp=received_ms,
            ),
        )
        await self._store_event(tracking_event, received_ms)
