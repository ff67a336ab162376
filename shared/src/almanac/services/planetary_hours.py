"""Planetary hours for a date and location."""

from __future__ import annotations

import logging
from datetime import date, datetime

from celestial.planetary_hours import build_planetary_hours_data

from almanac.config import get_settings
from almanac.schemas.planetary_hours import PlanetaryHoursData
from almanac.services.sun_times import SunTimesClient
from almanac.services.timezones import resolve_timezone

logger = logging.getLogger(__name__)


class PlanetaryHoursService:
    """Resolves sun times, partitions the day, and selects the current hour."""

    def __init__(self, sun_times: SunTimesClient, *, fallback_timezone: str | None = None) -> None:
        self._sun_times = sun_times
        self._fallback_timezone = fallback_timezone or get_settings().timezone

    async def get_planetary_hours(
        self,
        day: date,
        latitude: float,
        longitude: float,
        now: datetime | None = None,
    ) -> PlanetaryHoursData:
        timezone_name = resolve_timezone(
            latitude=latitude,
            longitude=longitude,
            fallback_timezone=self._fallback_timezone,
        )
        sun_times = await self._sun_times.sun_times(day, latitude, longitude, timezone_name)
        if sun_times.source == "fallback":
            logger.info("Using calculated sun times for %s at (%s, %s)", day, latitude, longitude)
        return build_planetary_hours_data(day, sun_times, timezone_name, now)
