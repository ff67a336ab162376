"""Sunrise/sunset lookup with a rate-limit cooldown and closed-form fallback."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx
from celestial.planetary_hours import fallback_sun_times

from almanac.config import get_settings
from almanac.schemas.planetary_hours import SunTimes

logger = logging.getLogger(__name__)

SunTimesKey = tuple[date, float, float]


class SunTimesUnavailable(Exception):
    """The sun-time service gave no usable answer."""


@dataclass
class SunTimesContext:
    """Owned cache and rate-limit state for one SunTimesClient.

    Races between concurrent requests are benign (last write wins).
    """

    cooldown_seconds: float = 60.0
    clock: Callable[[], float] = time.monotonic
    cache: dict[SunTimesKey, SunTimes] = field(default_factory=dict)
    cooldown_until: float | None = None

    def cooldown_active(self) -> bool:
        return self.cooldown_until is not None and self.clock() < self.cooldown_until

    def trip_cooldown(self) -> None:
        self.cooldown_until = self.clock() + self.cooldown_seconds

    def clear_cooldown(self) -> None:
        self.cooldown_until = None


def parse_api_time(value: Any, day: date, tz: ZoneInfo) -> datetime:
    """Parse an ISO timestamp or a local 'H:MM:SS AM' clock time."""
    if not isinstance(value, str) or not value.strip():
        raise SunTimesUnavailable(f"Missing time value: {value!r}")
    text = value.strip()
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            clock = datetime.strptime(text, "%I:%M:%S %p").time()
        except ValueError as exc:
            raise SunTimesUnavailable(f"Unparseable time value: {text!r}") from exc
        parsed = datetime.combine(day, clock)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed.astimezone(UTC)


def _zone(name: Any, default: str) -> ZoneInfo:
    if isinstance(name, str) and name.strip():
        try:
            return ZoneInfo(name.strip())
        except (ZoneInfoNotFoundError, ValueError):
            logger.debug("Ignoring unknown timezone %r from sun-time service", name)
    return ZoneInfo(default)


class SunTimesClient:
    """Client for the external sunrise/sunset service."""

    def __init__(
        self,
        context: SunTimesContext | None = None,
        *,
        api_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        settings = get_settings()
        self.context = context or SunTimesContext(cooldown_seconds=settings.sun_times_cooldown_seconds)
        self._api_url = api_url or settings.sun_times_api_url
        self._client = client or httpx.AsyncClient(timeout=timeout or settings.sun_times_timeout)

    async def sun_times(
        self,
        day: date,
        latitude: float,
        longitude: float,
        timezone_name: str = "UTC",
    ) -> SunTimes:
        """Sunrise and sunset for a date and location; never raises."""
        key = (day, latitude, longitude)
        cached = self.context.cache.get(key)
        if cached is not None:
            return cached

        if self.context.cooldown_active():
            logger.debug("Sun-time service cooling down; using fallback for %s", day)
            return self._fallback(key)

        try:
            result = await self._fetch(day, latitude, longitude, timezone_name)
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 429:
                logger.warning(
                    "Sun-time service rate limited; cooling down for %ss",
                    self.context.cooldown_seconds,
                )
                self.context.trip_cooldown()
            else:
                logger.warning("Sun-time service error: %s", exc)
            return self._fallback(key)
        except (httpx.HTTPError, SunTimesUnavailable, ValueError) as exc:
            logger.warning("Error fetching sun times from API: %s", exc)
            return self._fallback(key)

        self.context.clear_cooldown()
        self.context.cache[key] = result
        return result

    async def _fetch(self, day: date, latitude: float, longitude: float, timezone_name: str) -> SunTimes:
        params = {"lat": latitude, "lng": longitude, "date": day.isoformat()}
        response = await self._client.get(self._api_url, params=params)
        response.raise_for_status()

        data = response.json()
        if not isinstance(data, dict) or data.get("status") != "OK":
            status = data.get("status") if isinstance(data, dict) else None
            raise SunTimesUnavailable(f"API returned status {status!r}")
        results = data.get("results")
        if not isinstance(results, dict):
            raise SunTimesUnavailable("API response has no results")

        tz = _zone(results.get("timezone"), timezone_name)
        sunrise = parse_api_time(results.get("sunrise"), day, tz)
        sunset = parse_api_time(results.get("sunset"), day, tz)
        if sunset <= sunrise:
            raise SunTimesUnavailable(f"Sunset {sunset} is not after sunrise {sunrise}")
        return SunTimes(sunrise=sunrise, sunset=sunset, source="api")

    def _fallback(self, key: SunTimesKey) -> SunTimes:
        result = fallback_sun_times(*key)
        self.context.cache[key] = result
        return result

    async def close(self) -> None:
        await self._client.aclose()
