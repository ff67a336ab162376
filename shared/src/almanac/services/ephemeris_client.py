"""Ephemeris provider contract and its Swiss Ephemeris implementation."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any, Literal, Protocol, TypeVar

import swisseph as swe
from celestial.bodies import ALL_BODIES, BODY_IDS, longitude_to_sign

from almanac.config import get_settings
from almanac.schemas.ephemeris import BodyPosition, LunarPhase

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNIX_EPOCH_JD = 2440587.5

# Elongation quadrant -> provider phase name
PHASE_QUADRANTS = ("NewMoon", "FirstQuarter", "FullMoon", "LastQuarter")
PHASE_SCAN_STEP = timedelta(hours=6)
PHASE_TOLERANCE = timedelta(seconds=1)


class EphemerisProvider(Protocol):
    """Source of positions, lunar phases and eclipses."""

    async def positions_at(
        self,
        at: datetime,
        latitude: float,
        longitude: float,
        bodies: Sequence[str] = ...,
    ) -> dict[str, BodyPosition]: ...

    async def lunar_phases_for_month(self, year: int, month: int) -> list[LunarPhase]: ...

    async def eclipses_for_year(self, year: int, kind: Literal["solar", "lunar"]) -> list[dict[str, Any]]: ...


def datetime_to_jd(dt: datetime) -> float:
    """Convert datetime to Julian Day number (UT)."""
    utc = dt.astimezone(UTC)
    return swe.julday(
        utc.year,
        utc.month,
        utc.day,
        utc.hour + utc.minute / 60.0 + (utc.second + utc.microsecond / 1e6) / 3600.0,
    )


def jd_to_datetime(jd: float) -> datetime:
    """Convert a Julian Day number (UT) to an aware UTC datetime."""
    return datetime(1970, 1, 1, tzinfo=UTC) + timedelta(days=jd - UNIX_EPOCH_JD)


def _eclipse_type(retflags: int) -> str:
    if retflags & swe.ECL_TOTAL:
        return "total"
    if retflags & swe.ECL_ANNULAR:
        return "annular"
    if retflags & swe.ECL_PENUMBRAL:
        return "penumbral"
    return "partial"


class SwissEphemeris:
    """EphemerisProvider backed by pyswisseph.

    Swiss Ephemeris keeps the observer location as global state, so lookups
    hold a lock around ``set_topo`` and the calculations, which run in a
    worker thread.
    """

    def __init__(self, ephe_path: str | None = None) -> None:
        path = ephe_path if ephe_path is not None else get_settings().swisseph_ephe_path
        swe.set_ephe_path(path.strip() or None)
        self._lock = asyncio.Lock()

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        async with self._lock:
            return await asyncio.to_thread(func, *args)

    def _calc(self, jd: float, body: str, flags: int) -> tuple[float, float]:
        body_id = BODY_IDS[body]
        try:
            result, _ = swe.calc_ut(jd, body_id, swe.FLG_SWIEPH | flags)
        except Exception:
            # Fallback to Moshier (no external files needed)
            result, _ = swe.calc_ut(jd, body_id, swe.FLG_MOSEPH | flags)
        return result[0], result[3]

    def _position(self, jd: float, body: str) -> BodyPosition:
        try:
            longitude, _ = self._calc(jd, body, swe.FLG_SPEED | swe.FLG_TOPOCTR)
            # Diurnal parallax swings topocentric speed across zero near a station
            _, speed = self._calc(jd, body, swe.FLG_SPEED)
        except Exception as exc:
            logger.warning("swisseph failed for %s: %s", body, exc)
            return BodyPosition.unavailable(str(exc))
        longitude %= 360.0
        if longitude >= 360.0:
            longitude = 0.0
        sign, degree = longitude_to_sign(longitude)
        return BodyPosition(
            longitude=longitude,
            zodiac_sign_name=sign,
            degree_within_sign=degree,
            is_retrograde=speed < 0,
            speed=speed,
        )

    def _positions(
        self,
        jd: float,
        latitude: float,
        longitude: float,
        bodies: Sequence[str],
    ) -> dict[str, BodyPosition]:
        swe.set_topo(longitude, latitude, 0)
        return {body: self._position(jd, body) for body in bodies}

    async def positions_at(
        self,
        at: datetime,
        latitude: float,
        longitude: float,
        bodies: Sequence[str] = ALL_BODIES,
    ) -> dict[str, BodyPosition]:
        """Topocentric longitudes with geocentric speed and retrograde flags."""
        return await self._run(self._positions, datetime_to_jd(at), latitude, longitude, list(bodies))

    def _elongation(self, jd: float) -> float:
        sun, _ = self._calc(jd, "sun", swe.FLG_SPEED)
        moon, _ = self._calc(jd, "moon", swe.FLG_SPEED)
        return (moon - sun) % 360.0

    def _quadrant(self, jd: float) -> int:
        return int(self._elongation(jd) // 90.0) % 4

    def _refine_phase(self, low: datetime, high: datetime, start_quadrant: int) -> datetime:
        while high - low > PHASE_TOLERANCE:
            mid = low + (high - low) / 2
            if self._quadrant(datetime_to_jd(mid)) == start_quadrant:
                low = mid
            else:
                high = mid
        return high

    def _lunar_phases(self, year: int, month: int) -> list[LunarPhase]:
        start = datetime(year, month, 1, tzinfo=UTC)
        end = datetime(year + (month == 12), month % 12 + 1, 1, tzinfo=UTC)
        phases = []
        current = start
        quadrant = self._quadrant(datetime_to_jd(current))
        while current < end:
            nxt = min(current + PHASE_SCAN_STEP, end)
            next_quadrant = self._quadrant(datetime_to_jd(nxt))
            if next_quadrant != quadrant:
                at = self._refine_phase(current, nxt, quadrant)
                if at < end:
                    phases.append(LunarPhase(phase=PHASE_QUADRANTS[next_quadrant], at=at))
            current, quadrant = nxt, next_quadrant
        return phases

    async def lunar_phases_for_month(self, year: int, month: int) -> list[LunarPhase]:
        """New, first-quarter, full and last-quarter instants within a month."""
        return await self._run(self._lunar_phases, year, month)

    def _eclipses(self, year: int, kind: Literal["solar", "lunar"]) -> list[dict[str, Any]]:
        search = swe.sol_eclipse_when_glob if kind == "solar" else swe.lun_eclipse_when
        jd = swe.julday(year, 1, 1, 0.0)
        jd_end = swe.julday(year + 1, 1, 1, 0.0)
        records = []
        while True:
            retflags, tret = search(jd, swe.FLG_SWIEPH, 0, False)
            maximum = tret[0]
            if maximum >= jd_end:
                break
            records.append(
                {
                    "kind": kind,
                    "type": _eclipse_type(retflags),
                    "date": jd_to_datetime(maximum).isoformat(),
                }
            )
            jd = maximum + 1.0
        return records

    async def eclipses_for_year(self, year: int, kind: Literal["solar", "lunar"]) -> list[dict[str, Any]]:
        """Eclipses of one kind whose maximum falls within the year."""
        return await self._run(self._eclipses, year, kind)
