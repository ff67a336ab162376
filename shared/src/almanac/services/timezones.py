"""Timezone resolution from coordinates."""

from __future__ import annotations

import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from timezonefinder import TimezoneFinder

logger = logging.getLogger(__name__)

_finder: TimezoneFinder | None = None


def _get_finder() -> TimezoneFinder:
    global _finder
    if _finder is None:
        _finder = TimezoneFinder(in_memory=True)
    return _finder


def infer_timezone(*, latitude: float, longitude: float) -> str | None:
    """Infer IANA timezone for the given coordinates."""
    finder = _get_finder()
    timezone_name = finder.timezone_at(lng=longitude, lat=latitude)
    if not timezone_name:
        timezone_name = finder.certain_timezone_at(lng=longitude, lat=latitude)
    if not timezone_name:
        return None

    normalized = str(timezone_name).strip()
    if not normalized:
        return None

    try:
        ZoneInfo(normalized)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Timezone %r for (%s, %s) is not installed", normalized, latitude, longitude)
        return None
    return normalized


def resolve_timezone(*, latitude: float, longitude: float, fallback_timezone: str) -> str:
    """Timezone at the coordinates, or ``fallback_timezone`` when none is found."""
    return infer_timezone(latitude=latitude, longitude=longitude) or fallback_timezone.strip()
