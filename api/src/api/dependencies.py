"""FastAPI dependency injection."""

from __future__ import annotations

from functools import lru_cache

from almanac.config import get_settings
from almanac.services.ephemeris_client import SwissEphemeris
from almanac.services.planetary_hours import PlanetaryHoursService
from almanac.services.sun_times import SunTimesClient
from almanac.services.year_cache import YearDataCache, create_year_data_cache
from pipeline.orchestrator import YearBundleService


@lru_cache(maxsize=1)
def get_sun_times_client() -> SunTimesClient:
    return SunTimesClient()


@lru_cache(maxsize=1)
def get_year_data_cache() -> YearDataCache:
    return create_year_data_cache(get_settings())


@lru_cache(maxsize=1)
def get_ephemeris() -> SwissEphemeris:
    return SwissEphemeris()


def get_year_bundle_service() -> YearBundleService:
    return YearBundleService(get_year_data_cache(), get_ephemeris(), settings=get_settings())


def get_planetary_hours_service() -> PlanetaryHoursService:
    return PlanetaryHoursService(get_sun_times_client(), fallback_timezone=get_settings().timezone)


async def close_services() -> None:
    """Release clients created for this process and forget cached services."""
    if get_sun_times_client.cache_info().currsize:
        await get_sun_times_client().close()
    get_sun_times_client.cache_clear()
    get_year_data_cache.cache_clear()
    get_ephemeris.cache_clear()
