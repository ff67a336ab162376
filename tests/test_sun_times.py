"""Tests for the sun-time service client."""

from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

import httpx
import pytest
from almanac.services.sun_times import (
    SunTimesClient,
    SunTimesContext,
    SunTimesUnavailable,
    parse_api_time,
)

API_URL = "https://sun.test/json"
DAY = date(2024, 3, 18)
LAT, LON = 40.7128, -74.006


def _ok_payload(**overrides):
    results = {
        "sunrise": "6:59:12 AM",
        "sunset": "7:11:03 PM",
        "timezone": "America/New_York",
    }
    results.update(overrides)
    return {"status": "OK", "results": results}


class Recorder:
    """MockTransport handler that records requests and replays canned responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def _client(handler, monotonic) -> SunTimesClient:
    context = SunTimesContext(cooldown_seconds=60.0, clock=monotonic)
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SunTimesClient(context, api_url=API_URL, client=http)


def test_parse_api_time_local_clock():
    tz = ZoneInfo("America/New_York")
    assert parse_api_time("6:59:12 AM", DAY, tz) == datetime(2024, 3, 18, 10, 59, 12, tzinfo=UTC)
    assert parse_api_time("7:11:03 PM", DAY, tz) == datetime(2024, 3, 18, 23, 11, 3, tzinfo=UTC)


def test_parse_api_time_iso():
    tz = ZoneInfo("UTC")
    assert parse_api_time("2024-03-18T10:59:12+00:00", DAY, tz) == datetime(
        2024, 3, 18, 10, 59, 12, tzinfo=UTC
    )


def test_parse_api_time_rejects_garbage():
    with pytest.raises(SunTimesUnavailable):
        parse_api_time("", DAY, ZoneInfo("UTC"))
    with pytest.raises(SunTimesUnavailable):
        parse_api_time("sometime", DAY, ZoneInfo("UTC"))
    with pytest.raises(SunTimesUnavailable):
        parse_api_time(None, DAY, ZoneInfo("UTC"))


@pytest.mark.asyncio
async def test_sun_times_from_api(monotonic):
    handler = Recorder(httpx.Response(200, json=_ok_payload()))
    client = _client(handler, monotonic)

    result = await client.sun_times(DAY, LAT, LON, "America/New_York")

    assert result.source == "api"
    assert result.sunrise == datetime(2024, 3, 18, 10, 59, 12, tzinfo=UTC)
    assert result.sunset == datetime(2024, 3, 18, 23, 11, 3, tzinfo=UTC)
    params = handler.requests[0].url.params
    assert params["lat"] == str(LAT)
    assert params["lng"] == str(LON)
    assert params["date"] == "2024-03-18"
    await client.close()


@pytest.mark.asyncio
async def test_results_are_cached_per_date_and_location(monotonic):
    handler = Recorder(httpx.Response(200, json=_ok_payload()))
    client = _client(handler, monotonic)

    first = await client.sun_times(DAY, LAT, LON)
    second = await client.sun_times(DAY, LAT, LON)
    await client.sun_times(DAY, 51.5, -0.12)

    assert first == second
    assert len(handler.requests) == 2


@pytest.mark.asyncio
async def test_rate_limit_trips_cooldown(monotonic):
    handler = Recorder(
        httpx.Response(429, json={"status": "TOO_MANY"}),
        httpx.Response(200, json=_ok_payload()),
    )
    client = _client(handler, monotonic)

    limited = await client.sun_times(DAY, LAT, LON)
    assert limited.source == "fallback"
    assert client.context.cooldown_active()

    # Inside the cooldown no request is made
    during = await client.sun_times(date(2024, 3, 19), LAT, LON)
    assert during.source == "fallback"
    assert len(handler.requests) == 1

    monotonic.value += 61
    assert not client.context.cooldown_active()
    after = await client.sun_times(date(2024, 3, 20), LAT, LON, "America/New_York")
    assert after.source == "api"
    assert len(handler.requests) == 2
    assert client.context.cooldown_until is None


@pytest.mark.asyncio
async def test_fallback_result_is_cached(monotonic):
    handler = Recorder(httpx.Response(503))
    client = _client(handler, monotonic)

    first = await client.sun_times(DAY, LAT, LON)
    second = await client.sun_times(DAY, LAT, LON)

    assert first.source == "fallback"
    assert second == first
    assert len(handler.requests) == 1
    # Server errors do not start a cooldown
    assert not client.context.cooldown_active()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"status": "INVALID_REQUEST"}),
        httpx.Response(200, json={"status": "OK"}),
        httpx.Response(200, json=_ok_payload(sunrise="7:11:03 PM", sunset="6:59:12 AM")),
        httpx.Response(200, json=_ok_payload(sunrise="")),
        httpx.Response(200, text="<html>oops</html>"),
        httpx.Response(500),
    ],
)
async def test_unusable_responses_fall_back(response, monotonic):
    client = _client(Recorder(response), monotonic)
    result = await client.sun_times(DAY, LAT, LON)
    assert result.source == "fallback"
    assert result.sunrise < result.sunset


@pytest.mark.asyncio
async def test_transport_errors_fall_back(monotonic):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler, monotonic)
    result = await client.sun_times(DAY, LAT, LON)
    assert result.source == "fallback"
    assert not client.context.cooldown_active()


@pytest.mark.asyncio
async def test_timeouts_fall_back_without_cooldown(monotonic):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ReadTimeout("timed out", request=request)

    client = _client(handler, monotonic)
    result = await client.sun_times(DAY, LAT, LON)

    assert result.source == "fallback"
    assert result.sunrise < result.sunset
    assert not client.context.cooldown_active()
    assert len(calls) == 1
