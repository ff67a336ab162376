"""Pydantic schemas for calendar events and year data bundles."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, Field


class EventPosition(BaseModel):
    """Position snapshot embedded in an event."""

    degree: float
    degree_formatted: str
    zodiac_sign_name: str


class LunationEvent(BaseModel):
    type: Literal["lunation"] = "lunation"
    id: str
    title: str  # phase name, e.g. 'Full Moon'
    utc_datetime: datetime
    local_datetime: datetime
    moon_position: EventPosition | None = None
    is_eclipse: bool = False
    eclipse_type: Literal["solar", "lunar"] | None = None


class IngressEvent(BaseModel):
    type: Literal["ingress"] = "ingress"
    id: str
    utc_datetime: datetime
    local_datetime: datetime
    body: str
    from_sign: str
    to_sign: str
    degree: float
    degree_formatted: str
    is_retrograde: bool = False


class StationEvent(BaseModel):
    type: Literal["station"] = "station"
    id: str
    utc_datetime: datetime
    local_datetime: datetime
    body: str
    station_type: Literal["retrograde", "direct"]
    degree: float
    degree_formatted: str
    zodiac_sign_name: str


class AspectEvent(BaseModel):
    type: Literal["aspect"] = "aspect"
    id: str
    utc_datetime: datetime
    local_datetime: datetime
    body1: str
    body2: str
    aspect_name: str
    orb: float
    body1_position: EventPosition
    body2_position: EventPosition


CalendarEvent = Annotated[
    LunationEvent | IngressEvent | StationEvent | AspectEvent,
    Field(discriminator="type"),
]


class LinePoint(BaseModel):
    at: datetime
    longitude: float


class BodyLine(BaseModel):
    body: str
    color: str
    points: list[LinePoint] = Field(default_factory=list)


class LineSeries(BaseModel):
    """Per-body longitude series for ephemeris line charts."""

    dates: list[datetime] = Field(default_factory=list)
    bodies: list[BodyLine] = Field(default_factory=list)


class YearDataBundle(BaseModel):
    """Everything derived for one year at one location."""

    year: int
    latitude: float
    longitude: float
    created_at: datetime
    format_version: int
    list_events: list[CalendarEvent] = Field(default_factory=list)
    line_series: LineSeries = Field(default_factory=LineSeries)
    lunations: list[LunationEvent] = Field(default_factory=list)
    is_complete: bool = False
