"""API test configuration."""

from datetime import UTC, date, datetime

import pipeline.orchestrator as orchestrator
import pytest
from almanac.config import Settings
from almanac.schemas.calendar import IngressEvent, LineSeries
from almanac.schemas.planetary_hours import SunTimes
from almanac.services.kv_store import MemoryKeyValueStore
from almanac.services.year_cache import YearDataCache
from api.dependencies import get_planetary_hours_service, get_year_bundle_service
from api.main import create_app
from celestial.planetary_hours import build_planetary_hours_data
from celestial.transits import TransitScan
from httpx import ASGITransport, AsyncClient
from pipeline.orchestrator import YearBundleService

NOW = datetime(2026, 3, 1, tzinfo=UTC)


class StubStages:
    """Replaces the derivation stages so the real YearBundleService runs without an ephemeris."""

    def __init__(self):
        self.calls: list[tuple[int, float, float]] = []

    async def run_events_stage(self, year, latitude, longitude, provider, **kwargs):
        self.calls.append((year, latitude, longitude))
        at = datetime(year, 4, 2, 9, 41, tzinfo=UTC)
        event = IngressEvent(
            id=f"ingress-mars-{at.isoformat()}",
            utc_datetime=at,
            local_datetime=at,
            body="mars",
            from_sign="Aries",
            to_sign="Taurus",
            degree=0.0,
            degree_formatted="0°0'0\"",
        )
        return TransitScan(events=[event], resolved=True)

    async def run_lines_stage(self, year, latitude, longitude, provider, **kwargs):
        return LineSeries()

    async def run_lunations_stage(self, year, latitude, longitude, provider, **kwargs):
        return []


class FakePlanetaryHoursService:
    def __init__(self):
        self.calls: list[tuple[date, float, float]] = []

    async def get_planetary_hours(self, day, latitude, longitude, now=None):
        self.calls.append((day, latitude, longitude))
        sun_times = SunTimes(
            sunrise=datetime(day.year, day.month, day.day, 6, tzinfo=UTC),
            sunset=datetime(day.year, day.month, day.day, 18, tzinfo=UTC),
            source="fallback",
        )
        return build_planetary_hours_data(day, sun_times, "UTC", now=NOW)


@pytest.fixture
def stages(monkeypatch):
    stub = StubStages()
    monkeypatch.setattr(orchestrator, "run_events_stage", stub.run_events_stage)
    monkeypatch.setattr(orchestrator, "run_lines_stage", stub.run_lines_stage)
    monkeypatch.setattr(orchestrator, "run_lunations_stage", stub.run_lunations_stage)
    monkeypatch.setattr(orchestrator, "resolve_timezone", lambda **kwargs: "UTC")
    return stub


@pytest.fixture
def year_service(stages):
    cache = YearDataCache(MemoryKeyValueStore(), clock=lambda: NOW)
    return YearBundleService(cache, provider=object(), settings=Settings(), clock=lambda: NOW)


@pytest.fixture
def hours_service():
    return FakePlanetaryHoursService()


@pytest.fixture
def app(year_service, hours_service):
    a = create_app()
    a.dependency_overrides[get_year_bundle_service] = lambda: year_service
    a.dependency_overrides[get_planetary_hours_service] = lambda: hours_service
    return a


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
