"""Transit events stage: ingresses, stations and aspects for a year."""

from __future__ import annotations

import logging

from almanac.services.ephemeris_client import EphemerisProvider
from celestial.bodies import EVENT_BODIES
from celestial.transits import TransitScan, detect_events, year_sample_instants

from pipeline.stages.sampling import BoundedLocator, sample_positions

logger = logging.getLogger(__name__)


async def run_events_stage(
    year: int,
    latitude: float,
    longitude: float,
    provider: EphemerisProvider,
    *,
    timezone_name: str,
    sample_hours: int,
    concurrency: int,
) -> TransitScan:
    locate = BoundedLocator(provider, latitude, longitude, EVENT_BODIES, concurrency)
    samples, failed = await sample_positions(locate, year_sample_instants(year, sample_hours))
    scan = await detect_events(samples, locate, timezone_name)
    if failed:
        logger.warning("%d of %d event samples failed for %s", failed, failed + len(samples), year)
        scan.resolved = False
    logger.info("Detected %d transit events for %s", len(scan.events), year)
    return scan
