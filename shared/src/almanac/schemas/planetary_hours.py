"""Pydantic schemas for sun times and planetary hours."""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field


class SunTimes(BaseModel):
    """Sunrise and sunset for one date and location."""

    sunrise: datetime
    sunset: datetime
    source: Literal["api", "fallback"] = "api"


class PlanetaryHour(BaseModel):
    """One of the 24 unequal hours of a solar day."""

    model_config = {"frozen": True}

    index: int = Field(ge=1, le=12)
    ruling_body: str
    symbol: str
    start: datetime
    end: datetime
    is_day_hour: bool


class PlanetaryHoursData(BaseModel):
    """Planetary hours of a day with the hour containing 'now', if any."""

    day: date
    timezone: str
    sunrise: datetime
    sunset: datetime
    source: Literal["api", "fallback"]
    day_ruler: str
    day_hours: list[PlanetaryHour]
    night_hours: list[PlanetaryHour]
    current_hour: PlanetaryHour | None = None
