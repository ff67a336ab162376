"""Lunations stage: a year's lunar phases tagged with eclipses."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Literal

from almanac.schemas.calendar import LunationEvent
from almanac.schemas.ephemeris import BodyPosition, LunarPhase
from almanac.services.ephemeris_client import EphemerisProvider
from celestial.lunations import build_eclipse_index, correlate_lunations

logger = logging.getLogger(__name__)


async def _fetch_phases(provider: EphemerisProvider, year: int) -> list[LunarPhase]:
    phases: list[LunarPhase] = []
    for month in range(1, 13):
        try:
            phases.extend(await provider.lunar_phases_for_month(year, month))
        except Exception as exc:
            logger.error("Error fetching lunar phases for %s-%02d: %s", year, month, exc)
    return phases


async def _fetch_eclipses(
    provider: EphemerisProvider,
    year: int,
    kind: Literal["solar", "lunar"],
) -> list[dict[str, Any]]:
    try:
        records = await provider.eclipses_for_year(year, kind)
    except Exception as exc:
        logger.error("Error fetching %s eclipses for %s: %s", kind, year, exc)
        return []
    logger.info("Fetched %d %s eclipses for %s", len(records), kind, year)
    return records


async def _moon_at(
    provider: EphemerisProvider,
    at: datetime,
    latitude: float,
    longitude: float,
) -> BodyPosition | None:
    try:
        positions = await provider.positions_at(at, latitude, longitude, ["moon"])
    except Exception as exc:
        logger.error("Error fetching moon position for %s: %s", at.isoformat(), exc)
        return None
    return positions.get("moon")


async def run_lunations_stage(
    year: int,
    latitude: float,
    longitude: float,
    provider: EphemerisProvider,
    *,
    timezone_name: str,
) -> list[LunationEvent]:
    phases = await _fetch_phases(provider, year)
    if not phases:
        logger.warning("No lunar phases found for %s", year)
        return []

    solar, lunar = await asyncio.gather(
        _fetch_eclipses(provider, year, "solar"),
        _fetch_eclipses(provider, year, "lunar"),
    )
    moon_positions = await asyncio.gather(
        *(_moon_at(provider, phase.at, latitude, longitude) for phase in phases)
    )
    return correlate_lunations(
        phases,
        build_eclipse_index(solar, lunar),
        moon_positions,
        timezone_name,
    )
