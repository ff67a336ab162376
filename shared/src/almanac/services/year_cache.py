"""Versioned, self-validating cache of derived year data per location."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from pydantic import ValidationError

from almanac.config import Settings
from almanac.schemas.calendar import CalendarEvent, YearDataBundle
from almanac.services.kv_store import KeyValueStore, MemoryKeyValueStore, SqlKeyValueStore

logger = logging.getLogger(__name__)

# Increment when the persisted bundle format changes
CACHE_VERSION = 3
MAX_CACHED_YEARS = 10
KEY_PREFIX = "year-data-"

# UTC clock times produced by the old coarse sampling
SAMPLED_HOURS = frozenset({5, 11, 17, 23})
SAMPLED_MINUTES = frozenset({0, 30})
STALE_SAMPLE_SIZE = 10
STALE_THRESHOLD = 0.3


def cache_key(year: int, latitude: float, longitude: float) -> str:
    return f"{KEY_PREFIX}{year}-{latitude}-{longitude}"


def _location_suffix(latitude: float, longitude: float) -> str:
    return f"-{latitude}-{longitude}"


def _year_from_key(key: str, latitude: float, longitude: float) -> int | None:
    suffix = _location_suffix(latitude, longitude)
    if not key.startswith(KEY_PREFIX) or not key.endswith(suffix):
        return None
    middle = key[len(KEY_PREFIX):-len(suffix)]
    return int(middle) if middle.isdigit() else None


def has_sampled_timestamps(events: Sequence[CalendarEvent]) -> bool:
    """True when too many leading events sit on old sampling clock times."""
    if not events:
        return False
    sample = events[:STALE_SAMPLE_SIZE]
    sampled = 0
    for event in sample:
        at = event.utc_datetime.astimezone(UTC)
        if at.hour in SAMPLED_HOURS and at.minute in SAMPLED_MINUTES:
            sampled += 1
    return sampled / len(sample) > STALE_THRESHOLD


@dataclass(frozen=True)
class _CachedYear:
    key: str
    year: int
    created_at: datetime


class YearDataCache:
    """Cache of YearDataBundle keyed by (year, latitude, longitude).

    Persistence errors never propagate: a failed load is a miss and a failed
    write is logged and dropped.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        max_cached_years: int = MAX_CACHED_YEARS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._max_cached_years = max_cached_years
        self._clock = clock or (lambda: datetime.now(UTC))

    async def load(self, year: int, latitude: float, longitude: float) -> YearDataBundle | None:
        key = cache_key(year, latitude, longitude)
        try:
            raw = await self._store.get(key)
        except Exception:
            logger.exception("Failed to read year data cache entry %s", key)
            return None
        if raw is None:
            return None

        try:
            payload = json.loads(raw)
        except ValueError:
            logger.warning("Year data cache entry %s is not valid JSON", key)
            return None
        if not isinstance(payload, dict) or payload.get("format_version") != CACHE_VERSION:
            logger.info("Cache version mismatch for year %s, recalculating", year)
            return None

        try:
            bundle = YearDataBundle.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Year data cache entry %s failed validation: %s", key, exc)
            return None

        if not bundle.is_complete:
            logger.info("Cached data for year %s is marked incomplete, recalculating", year)
            return None

        if has_sampled_timestamps(bundle.list_events):
            logger.info("Cached data for year %s has sampled timestamps, discarding", year)
            await self.invalidate(year, latitude, longitude)
            return None

        return bundle

    async def store(
        self,
        year: int,
        latitude: float,
        longitude: float,
        bundle: YearDataBundle,
    ) -> None:
        key = cache_key(year, latitude, longitude)
        now = self._clock()
        try:
            record = bundle.model_copy(
                update={
                    "year": year,
                    "latitude": latitude,
                    "longitude": longitude,
                    "created_at": now,
                    "format_version": CACHE_VERSION,
                }
            )
            raw = record.model_dump_json()
        except Exception:
            logger.exception("Failed to serialize year data for %s", key)
            return

        try:
            await self._evict_if_needed(year, latitude, longitude, current_year=now.year)
            await self._store.set(key, raw)
        except Exception:
            logger.exception("Failed to write year data cache entry %s", key)

    async def invalidate(self, year: int, latitude: float, longitude: float) -> None:
        key = cache_key(year, latitude, longitude)
        try:
            await self._store.delete(key)
        except Exception:
            logger.exception("Failed to clear year data cache entry %s", key)

    async def cached_years(self, latitude: float, longitude: float) -> list[int]:
        try:
            keys = await self._store.keys(KEY_PREFIX)
        except Exception:
            logger.exception("Failed to list year data cache keys")
            return []
        years = (_year_from_key(key, latitude, longitude) for key in keys)
        return sorted(year for year in years if year is not None)

    async def _cached_entries(self, latitude: float, longitude: float) -> list[_CachedYear]:
        entries = []
        for key in await self._store.keys(KEY_PREFIX):
            year = _year_from_key(key, latitude, longitude)
            if year is None:
                continue
            raw = await self._store.get(key)
            if raw is None:
                continue
            try:
                payload = json.loads(raw)
                created_at = datetime.fromisoformat(payload["created_at"])
            except (ValueError, KeyError, TypeError) as exc:
                logger.warning("Skipping invalid cache entry %s: %s", key, exc)
                continue
            if created_at.tzinfo is None:
                created_at = created_at.replace(tzinfo=UTC)
            entries.append(_CachedYear(key=key, year=year, created_at=created_at))
        return entries

    async def _evict_if_needed(
        self,
        year: int,
        latitude: float,
        longitude: float,
        *,
        current_year: int,
    ) -> None:
        """Drop the oldest non-current year when adding a new year at the cap."""
        if year == current_year:
            return
        entries = await self._cached_entries(latitude, longitude)
        if any(entry.year == year for entry in entries):
            return

        evictable = [entry for entry in entries if entry.year not in (current_year, year)]
        if len({entry.year for entry in evictable}) < self._max_cached_years:
            return

        oldest = min(evictable, key=lambda entry: entry.created_at)
        logger.info("Evicting cached year %s (%s)", oldest.year, oldest.key)
        await self._store.delete(oldest.key)


def create_year_data_cache(settings: Settings) -> YearDataCache:
    """Build the cache on the configured backend."""
    backend = settings.cache_backend_name
    if backend == "memory":
        store: KeyValueStore = MemoryKeyValueStore()
    elif backend == "database":
        store = SqlKeyValueStore()
    else:
        raise ValueError(f"Unknown CACHE_BACKEND '{settings.cache_backend}'")
    return YearDataCache(store, max_cached_years=settings.max_cached_years)
