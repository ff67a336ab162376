"""Bounded-concurrency position sampling."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime

from almanac.schemas.ephemeris import BodyPosition, EphemerisSample
from almanac.services.ephemeris_client import EphemerisProvider

logger = logging.getLogger(__name__)


class BoundedLocator:
    """Position lookups for one location, at most ``concurrency`` in flight."""

    def __init__(
        self,
        provider: EphemerisProvider,
        latitude: float,
        longitude: float,
        bodies: Sequence[str],
        concurrency: int,
    ) -> None:
        self._provider = provider
        self._latitude = latitude
        self._longitude = longitude
        self._bodies = list(bodies)
        self._semaphore = asyncio.Semaphore(max(concurrency, 1))

    async def __call__(self, at: datetime) -> dict[str, BodyPosition]:
        async with self._semaphore:
            return await self._provider.positions_at(at, self._latitude, self._longitude, self._bodies)


async def sample_positions(
    locate: BoundedLocator,
    instants: Sequence[datetime],
) -> tuple[list[EphemerisSample], int]:
    """Sample every instant; failed lookups are dropped and counted."""

    async def _one(at: datetime) -> EphemerisSample | None:
        try:
            return EphemerisSample(at=at, positions=await locate(at))
        except Exception as exc:
            logger.warning("Sampling failed at %s: %s", at.isoformat(), exc)
            return None

    results = await asyncio.gather(*(_one(at) for at in instants))
    samples = [sample for sample in results if sample is not None]
    return samples, len(results) - len(samples)
