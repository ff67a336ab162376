"""Tests for the year data cache."""

import json
import logging
from datetime import UTC, datetime

import pytest
from almanac.config import Settings
from almanac.schemas.calendar import IngressEvent, YearDataBundle
from almanac.services.kv_store import MemoryKeyValueStore, SqlKeyValueStore
from almanac.services.year_cache import (
    CACHE_VERSION,
    YearDataCache,
    cache_key,
    create_year_data_cache,
    has_sampled_timestamps,
)

LAT, LON = 40.7128, -74.006


def _ingress(at: datetime) -> IngressEvent:
    return IngressEvent(
        id=f"ingress-mars-{at.isoformat()}",
        utc_datetime=at,
        local_datetime=at,
        body="mars",
        from_sign="Aries",
        to_sign="Taurus",
        degree=0.1,
        degree_formatted="0°6'0\"",
    )


def _bundle(year: int, *, events=None, is_complete: bool = True) -> YearDataBundle:
    if events is None:
        events = [_ingress(datetime(year, 3, 4, 7, 13, tzinfo=UTC))]
    return YearDataBundle(
        year=year,
        latitude=LAT,
        longitude=LON,
        created_at=datetime(2000, 1, 1, tzinfo=UTC),
        format_version=0,
        list_events=events,
        is_complete=is_complete,
    )


class FailingStore:
    async def get(self, key):
        raise RuntimeError("store offline")

    async def set(self, key, value):
        raise RuntimeError("store offline")

    async def delete(self, key):
        raise RuntimeError("store offline")

    async def keys(self, prefix=""):
        raise RuntimeError("store offline")


@pytest.mark.asyncio
async def test_store_then_load_round_trip(memory_store, clock):
    cache = YearDataCache(memory_store, clock=clock)
    await cache.store(2024, LAT, LON, _bundle(2024))

    loaded = await cache.load(2024, LAT, LON)
    assert loaded is not None
    assert loaded.year == 2024
    assert loaded.format_version == CACHE_VERSION
    assert loaded.created_at == clock.now
    assert [e.model_dump() for e in loaded.list_events] == [
        e.model_dump() for e in _bundle(2024).list_events
    ]
    assert await memory_store.keys() == [cache_key(2024, LAT, LON)]


@pytest.mark.asyncio
async def test_load_miss(memory_store):
    cache = YearDataCache(memory_store)
    assert await cache.load(2024, LAT, LON) is None


@pytest.mark.asyncio
async def test_version_mismatch_is_a_miss(memory_store, clock):
    cache = YearDataCache(memory_store, clock=clock)
    payload = json.loads(_bundle(2024).model_dump_json())
    payload["format_version"] = CACHE_VERSION - 1
    await memory_store.set(cache_key(2024, LAT, LON), json.dumps(payload))

    assert await cache.load(2024, LAT, LON) is None


@pytest.mark.asyncio
async def test_invalid_payloads_are_misses(memory_store):
    cache = YearDataCache(memory_store)
    await memory_store.set(cache_key(2024, LAT, LON), "{not json")
    assert await cache.load(2024, LAT, LON) is None

    await memory_store.set(cache_key(2024, LAT, LON), json.dumps({"format_version": CACHE_VERSION}))
    assert await cache.load(2024, LAT, LON) is None


@pytest.mark.asyncio
async def test_incomplete_entry_is_a_miss(memory_store, clock):
    cache = YearDataCache(memory_store, clock=clock)
    await cache.store(2024, LAT, LON, _bundle(2024, is_complete=False))
    assert await cache.load(2024, LAT, LON) is None


@pytest.mark.asyncio
async def test_stale_sampled_entry_is_discarded(memory_store, clock):
    """Events pinned to old six-hour sample times mark the entry as stale."""
    events = [
        _ingress(datetime(2024, 1, day, hour, minute, tzinfo=UTC))
        for day, hour, minute in [(2, 5, 0), (5, 11, 30), (9, 17, 0), (12, 23, 30), (15, 8, 41)]
    ]
    cache = YearDataCache(memory_store, clock=clock)
    await cache.store(2024, LAT, LON, _bundle(2024, events=events))

    assert await cache.load(2024, LAT, LON) is None
    assert await memory_store.get(cache_key(2024, LAT, LON)) is None


def test_has_sampled_timestamps_threshold():
    sampled = [_ingress(datetime(2024, 1, d, 5, 0, tzinfo=UTC)) for d in range(1, 4)]
    precise = [_ingress(datetime(2024, 2, d, 14, 7, tzinfo=UTC)) for d in range(1, 8)]
    # 3 of 10 is exactly 30%, not above it
    assert has_sampled_timestamps(sampled + precise) is False
    assert has_sampled_timestamps(sampled + precise[:6] + sampled[:1]) is True
    assert has_sampled_timestamps([]) is False
    # Only the first ten events are inspected
    assert has_sampled_timestamps(precise * 2 + sampled * 5) is False


@pytest.mark.asyncio
async def test_eviction_drops_oldest_non_current_year(memory_store, clock):
    cache = YearDataCache(memory_store, max_cached_years=10, clock=clock)
    await cache.store(2026, LAT, LON, _bundle(2026))
    for year in range(2010, 2020):
        clock.advance(minutes=1)
        await cache.store(year, LAT, LON, _bundle(year))

    assert await cache.cached_years(LAT, LON) == [*range(2010, 2020), 2026]

    clock.advance(minutes=1)
    await cache.store(2020, LAT, LON, _bundle(2020))

    years = await cache.cached_years(LAT, LON)
    assert 2010 not in years
    assert 2020 in years
    assert 2026 in years
    assert len([y for y in years if y != 2026]) == 10


@pytest.mark.asyncio
async def test_current_year_is_never_evicted(memory_store, clock):
    cache = YearDataCache(memory_store, max_cached_years=2, clock=clock)
    # The current year is the oldest entry
    await cache.store(2026, LAT, LON, _bundle(2026))
    for year in (2030, 2031, 2032):
        clock.advance(hours=1)
        await cache.store(year, LAT, LON, _bundle(year))

    assert await cache.cached_years(LAT, LON) == [2026, 2031, 2032]


@pytest.mark.asyncio
async def test_storing_current_year_or_rewriting_never_evicts(memory_store, clock):
    cache = YearDataCache(memory_store, max_cached_years=2, clock=clock)
    for year in (2020, 2021):
        clock.advance(hours=1)
        await cache.store(year, LAT, LON, _bundle(year))

    await cache.store(2026, LAT, LON, _bundle(2026))
    await cache.store(2020, LAT, LON, _bundle(2020))

    assert await cache.cached_years(LAT, LON) == [2020, 2021, 2026]


@pytest.mark.asyncio
async def test_other_locations_do_not_count(memory_store, clock):
    cache = YearDataCache(memory_store, max_cached_years=1, clock=clock)
    await cache.store(2020, LAT, LON, _bundle(2020))
    await cache.store(2021, -33.87, 151.21, _bundle(2021))

    assert await cache.cached_years(LAT, LON) == [2020]
    assert await cache.cached_years(-33.87, 151.21) == [2021]


@pytest.mark.asyncio
async def test_invalidate(memory_store, clock):
    cache = YearDataCache(memory_store, clock=clock)
    await cache.store(2024, LAT, LON, _bundle(2024))
    await cache.invalidate(2024, LAT, LON)
    assert await cache.load(2024, LAT, LON) is None
    # Clearing a missing entry is harmless
    await cache.invalidate(2024, LAT, LON)


@pytest.mark.asyncio
async def test_store_failures_never_propagate(caplog):
    cache = YearDataCache(FailingStore())
    with caplog.at_level(logging.ERROR, logger="almanac.services.year_cache"):
        assert await cache.load(2024, LAT, LON) is None
        await cache.store(2024, LAT, LON, _bundle(2024))
        await cache.invalidate(2024, LAT, LON)
        assert await cache.cached_years(LAT, LON) == []
    assert "store offline" in caplog.text


def test_create_year_data_cache_backends():
    memory = create_year_data_cache(Settings(CACHE_BACKEND="memory"))
    assert isinstance(memory._store, MemoryKeyValueStore)

    database = create_year_data_cache(Settings(CACHE_BACKEND="database", MAX_CACHED_YEARS=4))
    assert isinstance(database._store, SqlKeyValueStore)
    assert database._max_cached_years == 4

    with pytest.raises(ValueError):
        create_year_data_cache(Settings(CACHE_BACKEND="redis"))


def test_backend_name_is_normalized():
    assert Settings(CACHE_BACKEND=" Database ").cache_backend_name == "database"
    cache = create_year_data_cache(Settings(CACHE_BACKEND="MEMORY"))
    assert isinstance(cache._store, MemoryKeyValueStore)
