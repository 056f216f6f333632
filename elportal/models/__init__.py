"""Data models for the ElPortal tracking API."""

from elportal.models.tracking import (
    ClickEvent,
    ClickMetadata,
    ClickSource,
    ClientInfo,
    TrackingEvent,
    TrackingEventData,
)

__all__ = [
    "ClickEvent",
    "ClickMetadata",
    "ClickSource",
    "ClientInfo",
    "TrackingEvent",
    "TrackingEventData",
]
