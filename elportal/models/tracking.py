"""Records persisted in the key-value store by the tracking endpoints."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ClickSource(BaseModel):
    """Where on the site a click originated."""

    model_config = ConfigDict(extra="allow")

    page: Optional[str] = None
    component: Optional[str] = None
    variant: Optional[str] = None


class ClickMetadata(BaseModel):
    """Context captured with a click (annual consumption, price region)."""

    model_config = ConfigDict(extra="allow")

    consumption: Optional[float] = None
    region: Optional[str] = None


class ClickEvent(BaseModel):
    """
    A single attributed click, stored under ``click:<click_id>``.

    Attributes:
        click_id: Caller-generated id, always ``dep_`` prefixed
        partner_id: Affiliate partner the click is attributed to
        timestamp: Epoch milliseconds
        source: Originating page/component, or ``"pixel_tracking"`` when the
            click was recorded by a landing pixel
        metadata: Optional consumption/region context

    Unknown top-level fields are kept and stored with the click.
    """

    model_config = ConfigDict(extra="allow")

    click_id: str = Field(..., description="Click id (dep_*)")
    partner_id: str = Field(..., description="Partner id")
    timestamp: int = Field(..., description="Epoch milliseconds")
    source: ClickSource | str | None = None
    metadata: ClickMetadata | None = None

    def to_store(self) -> dict[str, Any]:
        # Fields the caller sent are stored as sent, explicit nulls included
        return self.model_dump(mode="json", exclude_unset=True)


class TrackingEventData(BaseModel):
    """Event-specific part of a :class:`TrackingEvent`."""

    click_id: Optional[str] = None
    session_id: Optional[str] = None
    page_url: Optional[str] = None
    timestamp: int
    event_type: Optional[str] = None


class ClientInfo(BaseModel):
    """Request context captured with a pixel hit."""

    ip: str
    user_agent: str
    timestamp: int


class TrackingEvent(BaseModel):
    """
    Generic event envelope written by the pixel endpoint.

    Stored under ``event:<partner_id>:<epoch_ms>:<random_suffix>`` with a
    7-day expiry. ``data`` holds a dumped :class:`TrackingEventData` (GET
    pixel) or the raw JSON body (POST pixel).
    """

    type: str
    partner_id: str
    partner_domain: str = "unknown"
    data: dict[str, Any]
    client_info: ClientInfo

    def to_store(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class PartnerMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    status: Optional[str] = None


class PartnerConfig(BaseModel):
    """
    Partner settings stored under ``partner_config:<partner_id>``.

    ``domain_whitelist`` entries are exact hostnames or ``*.<base>``
    wildcards. An empty whitelist allows every domain.
    """

    model_config = ConfigDict(extra="allow")

    metadata: PartnerMetadata = Field(default_factory=PartnerMetadata)
    domain_whitelist: list[str] = Field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.metadata.status == "active"

    def allows_domain(self, domain: str | None) -> bool:
        if not self.domain_whitelist:
            return True
        if not domain:
            return False
        domain = domain.lower()
        for allowed in self.domain_whitelist:
            allowed = allowed.lower()
            if allowed.startswith("*."):
                base = allowed[2:]
                if domain == base or domain.endswith(f".{base}"):
                    return True
            elif domain == allowed:
                return True
        return False
