"""Shared test configuration."""

from datetime import UTC, datetime, timedelta

import pytest
from almanac.config import reset_settings_cache
from almanac.services.kv_store import MemoryKeyValueStore


class FakeClock:
    """Settable wall clock for cache timestamps."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeMonotonic:
    """Settable monotonic clock for rate-limit cooldowns."""

    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings_cache()
    yield
    reset_settings_cache()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, tzinfo=UTC))


@pytest.fixture
def monotonic():
    return FakeMonotonic()


@pytest.fixture
def memory_store():
    return MemoryKeyValueStore()
