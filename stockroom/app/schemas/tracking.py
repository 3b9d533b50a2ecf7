from __future__ import annotations

from pydantic import BaseModel, Field


class TrackingEvent(BaseModel):
    date: str
    time: str | None = None
    location: str | None = None
    description: str
    event_type: str | None = None
    status: str | None = None


class TrackingSnapshot(BaseModel):
    """Carrier view of a shipment. Never persisted."""

    status: str | None = None  # lowercased carrier token; None when the carrier told us nothing
    events: list[TrackingEvent] = Field(default_factory=list)
    origin: str | None = None
    destination: str | None = None
    estimated_delivery: str | None = None
    tracking_url: str | None = None


class TrackingRequest(BaseModel):
    tracking_number: str = Field(min_length=1, max_length=128)
    carrier: str | None = Field(default=None, max_length=64)
    tracking_url: str | None = None


class TrackingRead(BaseModel):
    tracking_number: str
    carrier: str
    status: str
    events: list[TrackingEvent]
    origin: str | None
    destination: str | None
    estimated_delivery: str | None
    tracking_url: str | None
