"""Line chart stage: daily longitude series for a year."""

from __future__ import annotations

import logging

from almanac.schemas.calendar import LineSeries
from almanac.services.ephemeris_client import EphemerisProvider
from celestial.bodies import LINE_BODIES
from celestial.lines import build_line_series
from celestial.transits import year_sample_instants

from pipeline.stages.sampling import BoundedLocator, sample_positions

logger = logging.getLogger(__name__)


async def run_lines_stage(
    year: int,
    latitude: float,
    longitude: float,
    provider: EphemerisProvider,
    *,
    sample_hours: int,
    concurrency: int,
) -> LineSeries:
    locate = BoundedLocator(provider, latitude, longitude, LINE_BODIES, concurrency)
    samples, failed = await sample_positions(locate, year_sample_instants(year, sample_hours))
    if failed:
        logger.warning("%d line samples failed for %s", failed, year)
    return build_line_series(samples)
