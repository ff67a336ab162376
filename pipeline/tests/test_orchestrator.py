"""Tests for the year bundle orchestrator."""

from datetime import UTC, datetime

import pytest
from almanac.config import Settings
from almanac.schemas.calendar import IngressEvent, LineSeries, LunationEvent
from almanac.services.kv_store import MemoryKeyValueStore
from almanac.services.year_cache import CACHE_VERSION, YearDataCache
from celestial.transits import TransitScan

import pipeline.orchestrator as orchestrator
from pipeline.orchestrator import YearBundleService

LAT, LON = 51.5074, -0.1278
NOW = datetime(2026, 3, 1, tzinfo=UTC)


def _ingress(at: datetime) -> IngressEvent:
    return IngressEvent(
        id=f"ingress-mars-{at.isoformat()}",
        utc_datetime=at,
        local_datetime=at,
        body="mars",
        from_sign="Aries",
        to_sign="Taurus",
        degree=0.0,
        degree_formatted="0°0'0\"",
    )


def _lunation(at: datetime) -> LunationEvent:
    return LunationEvent(id=f"lunation-0-{at.isoformat()}", title="New Moon", utc_datetime=at, local_datetime=at)


class StageCalls:
    """Replaces the three stages and records how they were called."""

    def __init__(self, resolved: bool = True):
        self.resolved = resolved
        self.events: list[dict] = []
        self.lines: list[dict] = []
        self.lunations: list[dict] = []

    async def run_events_stage(self, year, latitude, longitude, provider, **kwargs):
        self.events.append({"year": year, **kwargs})
        return TransitScan(events=[_ingress(datetime(year, 4, 2, 9, 41, tzinfo=UTC))], resolved=self.resolved)

    async def run_lines_stage(self, year, latitude, longitude, provider, **kwargs):
        self.lines.append({"year": year, **kwargs})
        return LineSeries()

    async def run_lunations_stage(self, year, latitude, longitude, provider, **kwargs):
        self.lunations.append({"year": year, **kwargs})
        return [_lunation(datetime(year, 1, 11, 11, 57, tzinfo=UTC))]


@pytest.fixture
def stages(monkeypatch):
    calls = StageCalls()
    monkeypatch.setattr(orchestrator, "run_events_stage", calls.run_events_stage)
    monkeypatch.setattr(orchestrator, "run_lines_stage", calls.run_lines_stage)
    monkeypatch.setattr(orchestrator, "run_lunations_stage", calls.run_lunations_stage)
    monkeypatch.setattr(orchestrator, "resolve_timezone", lambda **kwargs: "Europe/London")
    return calls


@pytest.fixture
def service():
    settings = Settings(EVENTS_SAMPLE_HOURS=3, LINES_SAMPLE_HOURS=12, EPHEMERIS_CONCURRENCY=4)
    cache = YearDataCache(MemoryKeyValueStore(), clock=lambda: NOW)
    return YearBundleService(cache, provider=object(), settings=settings, clock=lambda: NOW)


@pytest.mark.asyncio
async def test_derive_year_bundle(service, stages):
    bundle = await service.derive_year_bundle(2024, LAT, LON)

    assert bundle.year == 2024
    assert (bundle.latitude, bundle.longitude) == (LAT, LON)
    assert bundle.created_at == NOW
    assert bundle.format_version == CACHE_VERSION
    assert bundle.is_complete is True
    assert len(bundle.list_events) == 1
    assert len(bundle.lunations) == 1

    assert stages.events == [
        {"year": 2024, "timezone_name": "Europe/London", "sample_hours": 3, "concurrency": 4}
    ]
    assert stages.lines == [{"year": 2024, "sample_hours": 12, "concurrency": 4}]
    assert stages.lunations == [{"year": 2024, "timezone_name": "Europe/London"}]


@pytest.mark.asyncio
async def test_get_year_bundle_is_cache_first(service, stages):
    first = await service.get_year_bundle(2024, LAT, LON)
    second = await service.get_year_bundle(2024, LAT, LON)

    assert len(stages.events) == 1
    assert second.year == first.year
    assert [e.id for e in second.list_events] == [e.id for e in first.list_events]


@pytest.mark.asyncio
async def test_incomplete_bundle_is_returned_but_not_cached(service, stages):
    stages.resolved = False

    bundle = await service.get_year_bundle(2024, LAT, LON)
    assert bundle.is_complete is False
    assert await service.cache.load(2024, LAT, LON) is None

    await service.get_year_bundle(2024, LAT, LON)
    assert len(stages.events) == 2


@pytest.mark.asyncio
async def test_refresh_recomputes_cached_year(service, stages):
    await service.get_year_bundle(2024, LAT, LON)
    refreshed = await service.refresh_year_bundle(2024, LAT, LON)

    assert len(stages.events) == 2
    assert refreshed.is_complete is True
    assert await service.cache.load(2024, LAT, LON) is not None
