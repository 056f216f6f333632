"""
Pixel tracking payloads.

A pixel request carries its data either as one ``data`` query parameter
holding URL-encoded JSON, or as discrete query parameters. Both shapes are
resolved once, at the boundary, into a single :class:`PixelEvent`.
"""

import json
from collections.abc import Mapping
from typing import Annotated, Any, Literal, Optional, Union
from urllib.parse import unquote

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError


class PixelEvent(BaseModel):
    """
    Canonical pixel event.

    Unknown JSON fields (``value``, ``contract_value``...) are kept as extras
    so they are carried into conversion records unchanged.
    """

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    partner_id: Optional[str] = None
    event_type: Optional[str] = None
    click_id: Optional[str] = None
    session_id: Optional[str] = None
    page_url: Optional[str] = None
    referrer: Optional[str] = None
    timestamp: Optional[int] = None

    def tracking_fields(self) -> dict[str, Any]:
        """Every field that was set, extras included."""
        return self.model_dump(mode="json", exclude_none=True)


class JsonPayload(BaseModel):
    """Payload sent as ``?data=<urlencoded json object>``."""

    kind: Literal["json"] = "json"
    body: dict[str, Any]

    def to_event(self, now_ms: int) -> PixelEvent:
        return PixelEvent.model_validate(self.body)


class DiscreteParams(BaseModel):
    """Payload sent as individual query parameters."""

    kind: Literal["discrete"] = "discrete"
    partner_id: Optional[str] = None
    event_type: Optional[str] = None
    click_id: Optional[str] = None
    url: Optional[str] = None
    ref: Optional[str] = None

    def to_event(self, now_ms: int) -> PixelEvent:
        return PixelEvent(
            partner_id=self.partner_id,
            event_type=self.event_type or "page_view",
            click_id=self.click_id,
            page_url=self.url,
            referrer=self.ref,
            timestamp=now_ms,
        )


PixelPayload = Annotated[
    Union[JsonPayload, DiscreteParams], Field(discriminator="kind")
]


def _load_json_object(raw: str) -> dict[str, Any] | None:
    # Starlette has already decoded the query string once; clients that
    # encodeURIComponent the JSON themselves need a second pass.
    for candidate in (raw, unquote(raw)):
        try:
            value = json.loads(candidate)
        except ValueError:
            continue
        return value if isinstance(value, dict) else None
    return None


def _discrete(params: Mapping[str, str]) -> DiscreteParams:
    return DiscreteParams(
        partner_id=params.get("partner_id") or None,
        event_type=params.get("event_type") or None,
        click_id=params.get("click_id") or None,
        url=params.get("url") or None,
        ref=params.get("ref") or None,
    )


def parse_pixel_query(params: Mapping[str, str]) -> PixelPayload:
    """
    Pick the payload shape of a pixel request.

    Args:
        params: Query parameters

    Returns:
        JsonPayload when ``data`` holds a JSON object, DiscreteParams otherwise
    """
    raw = params.get("data")
    if raw:
        body = _load_json_object(raw)
        if body is not None:
            return JsonPayload(body=body)
    return _discrete(params)


def resolve_pixel_event(params: Mapping[str, str], now_ms: int) -> PixelEvent:
    """
    Resolve query parameters into the canonical event.

    A JSON payload whose fields cannot be validated (e.g. a non-numeric
    timestamp) falls back to the discrete parameters.
    """
    payload = parse_pixel_query(params)
    try:
        return payload.to_event(now_ms)
    except PydanticValidationError:
        return _discrete(params).to_event(now_ms)
