"""Year bundle orchestrator - cache-first derivation of a year's data."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime

from almanac.config import Settings, get_settings
from almanac.schemas.calendar import YearDataBundle
from almanac.services.ephemeris_client import EphemerisProvider
from almanac.services.timezones import resolve_timezone
from almanac.services.year_cache import CACHE_VERSION, YearDataCache

from pipeline.stages.events_stage import run_events_stage
from pipeline.stages.lines_stage import run_lines_stage
from pipeline.stages.lunations_stage import run_lunations_stage

logger = logging.getLogger(__name__)


class YearBundleService:
    """Serves year bundles from the cache, deriving and storing them on a miss."""

    def __init__(
        self,
        cache: YearDataCache,
        provider: EphemerisProvider,
        *,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.cache = cache
        self.provider = provider
        self.settings = settings or get_settings()
        self._clock = clock or (lambda: datetime.now(UTC))

    async def get_year_bundle(self, year: int, latitude: float, longitude: float) -> YearDataBundle:
        cached = await self.cache.load(year, latitude, longitude)
        if cached is not None:
            logger.info("Year data cache hit for %s at (%s, %s)", year, latitude, longitude)
            return cached

        logger.info("Year data cache miss for %s at (%s, %s); deriving", year, latitude, longitude)
        bundle = await self.derive_year_bundle(year, latitude, longitude)
        await self._store_if_complete(bundle)
        return bundle

    async def refresh_year_bundle(self, year: int, latitude: float, longitude: float) -> YearDataBundle:
        await self.cache.invalidate(year, latitude, longitude)
        bundle = await self.derive_year_bundle(year, latitude, longitude)
        await self._store_if_complete(bundle)
        return bundle

    async def derive_year_bundle(self, year: int, latitude: float, longitude: float) -> YearDataBundle:
        """Run all stages concurrently and assemble the bundle.

        The bundle is complete only when every event instant was refined.
        """
        settings = self.settings
        timezone_name = resolve_timezone(
            latitude=latitude,
            longitude=longitude,
            fallback_timezone=settings.timezone,
        )
        scan, line_series, lunations = await asyncio.gather(
            run_events_stage(
                year,
                latitude,
                longitude,
                self.provider,
                timezone_name=timezone_name,
                sample_hours=settings.events_sample_hours,
                concurrency=settings.ephemeris_concurrency,
            ),
            run_lines_stage(
                year,
                latitude,
                longitude,
                self.provider,
                sample_hours=settings.lines_sample_hours,
                concurrency=settings.ephemeris_concurrency,
            ),
            run_lunations_stage(
                year,
                latitude,
                longitude,
                self.provider,
                timezone_name=timezone_name,
            ),
        )
        return YearDataBundle(
            year=year,
            latitude=latitude,
            longitude=longitude,
            created_at=self._clock(),
            format_version=CACHE_VERSION,
            list_events=scan.events,
            line_series=line_series,
            lunations=lunations,
            is_complete=scan.resolved,
        )

    async def _store_if_complete(self, bundle: YearDataBundle) -> None:
        if not bundle.is_complete:
            logger.warning("Year %s has unresolved event instants; not caching", bundle.year)
            return
        await self.cache.store(bundle.year, bundle.latitude, bundle.longitude, bundle)
