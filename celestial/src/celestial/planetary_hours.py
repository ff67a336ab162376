"""Unequal planetary hours from sunrise and sunset."""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

from almanac.schemas.planetary_hours import PlanetaryHour, PlanetaryHoursData, SunTimes

from celestial.bodies import BODY_SYMBOLS, CHALDEAN_ORDER, DAY_RULERS

HOURS_PER_HALF = 12
FULL_DAY = timedelta(hours=24)


def day_ruler(weekday: int) -> str:
    """Ruling body of a Python weekday (Monday == 0)."""
    return DAY_RULERS.get(weekday, "sun")


def fallback_sun_times(day: date, latitude: float, longitude: float) -> SunTimes:
    """Closed-form sunrise/sunset used when the sun-time service is unavailable.

    Solar noon is placed at 12:00 local mean time (720 - 4 * longitude minutes
    UTC). Polar day and night clamp the hour angle to 180° and 0°.
    """
    day_of_year = (day - date(day.year, 1, 1)).days + 1
    declination = 0.4093 * math.sin((2 * math.pi / 365) * (day_of_year - 81))
    cos_hour_angle = -math.tan(math.radians(latitude)) * math.tan(declination)
    hour_angle = math.acos(max(-1.0, min(1.0, cos_hour_angle)))
    hour_angle_minutes = math.degrees(hour_angle) * 4

    solar_noon_minutes = 720 - 4 * longitude
    midnight = datetime(day.year, day.month, day.day, tzinfo=UTC)
    sunrise = midnight + timedelta(minutes=math.floor(solar_noon_minutes - hour_angle_minutes))
    sunset = midnight + timedelta(minutes=math.floor(solar_noon_minutes + hour_angle_minutes))
    return SunTimes(sunrise=sunrise, sunset=sunset, source="fallback")


def generate_planetary_hours(
    day: date,
    sunrise: datetime,
    sunset: datetime,
) -> tuple[list[PlanetaryHour], list[PlanetaryHour]]:
    """Split daylight and the following night into 12 hours each.

    The ruler sequence starts at the weekday ruler and advances one Chaldean
    step per hour through all 24 hours, so night hour 1 follows day hour 12.
    """
    day_length = sunset - sunrise
    day_hour = day_length / HOURS_PER_HALF
    night_hour = (FULL_DAY - day_length) / HOURS_PER_HALF
    start_index = CHALDEAN_ORDER.index(day_ruler(day.weekday()))

    day_hours = [
        _hour(i, start_index + i, sunrise + i * day_hour, sunrise + (i + 1) * day_hour, True)
        for i in range(HOURS_PER_HALF)
    ]
    night_hours = [
        _hour(
            i,
            start_index + HOURS_PER_HALF + i,
            sunset + i * night_hour,
            sunset + (i + 1) * night_hour,
            False,
        )
        for i in range(HOURS_PER_HALF)
    ]
    return day_hours, night_hours


def _hour(offset: int, sequence: int, start: datetime, end: datetime, is_day: bool) -> PlanetaryHour:
    ruler = CHALDEAN_ORDER[sequence % len(CHALDEAN_ORDER)]
    return PlanetaryHour(
        index=offset + 1,
        ruling_body=ruler,
        symbol=BODY_SYMBOLS[ruler],
        start=start,
        end=end,
        is_day_hour=is_day,
    )


def current_planetary_hour(hours: Iterable[PlanetaryHour], now: datetime) -> PlanetaryHour | None:
    """The hour with ``start <= now < end``; None when no hour contains ``now``."""
    for hour in hours:
        if hour.start <= now < hour.end:
            return hour
    return None


def build_planetary_hours_data(
    day: date,
    sun_times: SunTimes,
    timezone_name: str,
    now: datetime | None = None,
) -> PlanetaryHoursData:
    tz = ZoneInfo(timezone_name)
    sunrise = sun_times.sunrise.astimezone(tz)
    sunset = sun_times.sunset.astimezone(tz)
    day_hours, night_hours = generate_planetary_hours(day, sunrise, sunset)
    current = current_planetary_hour([*day_hours, *night_hours], now or datetime.now(UTC))
    return PlanetaryHoursData(
        day=day,
        timezone=timezone_name,
        sunrise=sunrise,
        sunset=sunset,
        source=sun_times.source,
        day_ruler=day_ruler(day.weekday()),
        day_hours=day_hours,
        night_hours=night_hours,
        current_hour=current,
    )
