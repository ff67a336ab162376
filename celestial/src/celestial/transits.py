"""Ingress, station and aspect detection over a year of position samples."""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Literal
from zoneinfo import ZoneInfo

from almanac.schemas.calendar import (
    AspectEvent,
    CalendarEvent,
    EventPosition,
    IngressEvent,
    StationEvent,
)
from almanac.schemas.ephemeris import BodyPosition, EphemerisSample

from celestial.bodies import ASPECT_ANGLES, EVENT_BODIES
from celestial.geometry import angular_distance, sign_index

logger = logging.getLogger(__name__)

# Distance from the exact angle at which a sampled aspect counts as reached
DETECTION_ORB = 0.5
REFINE_TOLERANCE = timedelta(minutes=1)
REFINE_MAX_ITERATIONS = 20
_INV_PHI = (math.sqrt(5) - 1) / 2

Locate = Callable[[datetime], Awaitable[dict[str, BodyPosition]]]


@dataclass(frozen=True)
class TransitCandidate:
    """An event bracketed between two samples, not yet refined."""

    kind: Literal["ingress", "station", "aspect"]
    bodies: tuple[str, ...]
    prev_index: int
    index: int
    aspect: str | None = None


@dataclass
class TransitScan:
    events: list[CalendarEvent] = field(default_factory=list)
    resolved: bool = True


def year_sample_instants(year: int, interval_hours: int) -> list[datetime]:
    """Sample instants from Jan 1 12:00 UTC through Dec 31 23:59:59 UTC."""
    if interval_hours <= 0:
        raise ValueError("interval_hours must be positive")
    current = datetime(year, 1, 1, 12, 0, 0, tzinfo=UTC)
    end = datetime(year, 12, 31, 23, 59, 59, tzinfo=UTC)
    step = timedelta(hours=interval_hours)
    instants = []
    while current <= end:
        instants.append(current)
        current += step
    return instants


def _usable(sample: EphemerisSample, body: str) -> BodyPosition | None:
    position = sample.positions.get(body)
    if position is None or position.error:
        return None
    return position


def _distance_from_angle(pos1: BodyPosition, pos2: BodyPosition, angle: float) -> float:
    return abs(angular_distance(pos1.longitude, pos2.longitude) - angle)


def _sign(value: float) -> int:
    return (value > 0) - (value < 0)


def find_candidates(
    samples: Sequence[EphemerisSample],
    bodies: Sequence[str] = EVENT_BODIES,
) -> list[TransitCandidate]:
    """Bracket every ingress, station and exact aspect between adjacent samples."""
    candidates: list[TransitCandidate] = []
    last_seen: dict[str, int] = {}

    for idx, sample in enumerate(samples):
        for body in bodies:
            current = _usable(sample, body)
            if current is None:
                continue
            prev_idx = last_seen.get(body)
            last_seen[body] = idx
            if prev_idx is None:
                continue
            previous = samples[prev_idx].positions[body]

            if sign_index(previous.zodiac_sign_name) != sign_index(current.zodiac_sign_name):
                candidates.append(TransitCandidate("ingress", (body,), prev_idx, idx))

            prev_speed, speed = _sign(previous.speed), _sign(current.speed)
            if prev_speed != 0 and speed != 0 and prev_speed != speed:
                candidates.append(TransitCandidate("station", (body,), prev_idx, idx))

        if idx == 0:
            continue
        prev_sample = samples[idx - 1]
        for i, body1 in enumerate(bodies):
            for body2 in bodies[i + 1:]:
                pos1, pos2 = _usable(sample, body1), _usable(sample, body2)
                prev1, prev2 = _usable(prev_sample, body1), _usable(prev_sample, body2)
                if pos1 is None or pos2 is None or prev1 is None or prev2 is None:
                    continue
                for aspect, angle in ASPECT_ANGLES.items():
                    current_dist = _distance_from_angle(pos1, pos2, angle)
                    prev_dist = _distance_from_angle(prev1, prev2, angle)
                    if current_dist <= DETECTION_ORB < prev_dist:
                        candidates.append(
                            TransitCandidate("aspect", (body1, body2), idx - 1, idx, aspect)
                        )
    return candidates


async def _try_locate(locate: Locate, at: datetime) -> dict[str, BodyPosition] | None:
    try:
        return await locate(at)
    except Exception as exc:
        logger.warning("Position lookup failed at %s: %s", at.isoformat(), exc)
        return None


async def _bisect(
    low: datetime,
    high: datetime,
    crossed: Callable[[datetime], Awaitable[bool | None]],
) -> tuple[datetime, bool]:
    """Narrow [low, high] onto the first instant where ``crossed`` holds.

    Returns the best instant and whether the tolerance was reached.
    """
    best = high
    for _ in range(REFINE_MAX_ITERATIONS):
        if high - low <= REFINE_TOLERANCE:
            break
        mid = low + (high - low) / 2
        result = await crossed(mid)
        if result is None:
            return best, False
        if result:
            high = best = mid
        else:
            low = mid
    return best, high - low <= REFINE_TOLERANCE


async def _golden_minimum(
    low: datetime,
    high: datetime,
    distance_at: Callable[[datetime], Awaitable[float | None]],
) -> tuple[datetime, bool]:
    """Golden-section search for the instant of least distance in [low, high]."""
    c = high - (high - low) * _INV_PHI
    d = low + (high - low) * _INV_PHI
    fc = await distance_at(c)
    fd = await distance_at(d)
    if fc is None or fd is None:
        return (c if fd is None else d), False

    for _ in range(REFINE_MAX_ITERATIONS):
        if high - low <= REFINE_TOLERANCE:
            break
        if fc < fd:
            high, d, fd = d, c, fc
            c = high - (high - low) * _INV_PHI
            fc = await distance_at(c)
            if fc is None:
                return d, False
        else:
            low, c, fc = c, d, fd
            d = low + (high - low) * _INV_PHI
            fd = await distance_at(d)
            if fd is None:
                return c, False
    return (c if fc < fd else d), high - low <= REFINE_TOLERANCE


def _aspect_bracket(
    samples: Sequence[EphemerisSample],
    candidate: TransitCandidate,
) -> tuple[datetime, datetime]:
    """Walk forward to the sampled minimum and bracket it by its neighbours."""
    body1, body2 = candidate.bodies
    angle = ASPECT_ANGLES[candidate.aspect or "conjunct"]

    def dist(idx: int) -> float | None:
        pos1, pos2 = _usable(samples[idx], body1), _usable(samples[idx], body2)
        if pos1 is None or pos2 is None:
            return None
        return _distance_from_angle(pos1, pos2, angle)

    j = candidate.index
    while j + 1 < len(samples):
        here, after = dist(j), dist(j + 1)
        if here is None or after is None or after >= here:
            break
        j += 1

    low = samples[j - 1].at
    if j + 1 < len(samples):
        high = samples[j + 1].at
    else:
        high = samples[j].at + (samples[j].at - samples[j - 1].at)
    return low, high


def _event_position(position: BodyPosition) -> EventPosition:
    return EventPosition(
        degree=position.degree_within_sign,
        degree_formatted=position.degree_formatted,
        zodiac_sign_name=position.zodiac_sign_name,
    )


async def refine_candidate(
    candidate: TransitCandidate,
    samples: Sequence[EphemerisSample],
    locate: Locate,
    tz: ZoneInfo,
) -> tuple[CalendarEvent, bool]:
    """Resolve a candidate to the minute and build its event."""
    prev_sample = samples[candidate.prev_index]
    sample = samples[candidate.index]

    if candidate.kind == "ingress":
        body = candidate.bodies[0]
        from_index = sign_index(prev_sample.positions[body].zodiac_sign_name)

        async def left_sign(at: datetime) -> bool | None:
            positions = await _try_locate(locate, at)
            if positions is None or body not in positions:
                return None
            return sign_index(positions[body].zodiac_sign_name) != from_index

        instant, resolved = await _bisect(prev_sample.at, sample.at, left_sign)

    elif candidate.kind == "station":
        body = candidate.bodies[0]
        prev_direction = _sign(prev_sample.positions[body].speed)

        async def turned(at: datetime) -> bool | None:
            positions = await _try_locate(locate, at)
            if positions is None or body not in positions:
                return None
            return _sign(positions[body].speed) != prev_direction

        instant, resolved = await _bisect(prev_sample.at, sample.at, turned)

    else:
        body1, body2 = candidate.bodies
        angle = ASPECT_ANGLES[candidate.aspect or "conjunct"]

        async def distance_at(at: datetime) -> float | None:
            positions = await _try_locate(locate, at)
            if positions is None or body1 not in positions or body2 not in positions:
                return None
            return _distance_from_angle(positions[body1], positions[body2], angle)

        low, high = _aspect_bracket(samples, candidate)
        instant, resolved = await _golden_minimum(low, high, distance_at)

    positions = await _try_locate(locate, instant)
    if positions is None or any(b not in positions for b in candidate.bodies):
        positions = sample.positions
        resolved = False

    utc = instant.astimezone(UTC)
    local = utc.astimezone(tz)
    stamp = utc.isoformat()

    if candidate.kind == "ingress":
        body = candidate.bodies[0]
        position = positions[body]
        event: CalendarEvent = IngressEvent(
            id=f"ingress-{body}-{stamp}",
            utc_datetime=utc,
            local_datetime=local,
            body=body,
            from_sign=prev_sample.positions[body].zodiac_sign_name,
            to_sign=sample.positions[body].zodiac_sign_name,
            degree=position.degree_within_sign,
            degree_formatted=position.degree_formatted,
            is_retrograde=sample.positions[body].speed < 0,
        )
    elif candidate.kind == "station":
        body = candidate.bodies[0]
        position = positions[body]
        event = StationEvent(
            id=f"station-{body}-{stamp}",
            utc_datetime=utc,
            local_datetime=local,
            body=body,
            station_type="retrograde" if prev_sample.positions[body].speed > 0 else "direct",
            degree=position.degree_within_sign,
            degree_formatted=position.degree_formatted,
            zodiac_sign_name=position.zodiac_sign_name,
        )
    else:
        body1, body2 = candidate.bodies
        aspect = candidate.aspect or "conjunct"
        event = AspectEvent(
            id=f"aspect-{body1}-{body2}-{aspect}-{stamp}",
            utc_datetime=utc,
            local_datetime=local,
            body1=body1,
            body2=body2,
            aspect_name=aspect,
            orb=_distance_from_angle(positions[body1], positions[body2], ASPECT_ANGLES[aspect]),
            body1_position=_event_position(positions[body1]),
            body2_position=_event_position(positions[body2]),
        )
    return event, resolved


async def detect_events(
    samples: Sequence[EphemerisSample],
    locate: Locate,
    timezone_name: str = "UTC",
) -> TransitScan:
    """Detect and refine every ingress, station and aspect in ``samples``.

    Args:
        samples: Chronological position samples.
        locate: Async lookup of all event bodies at an arbitrary instant.
        timezone_name: Zone used for each event's ``local_datetime``.

    Returns:
        TransitScan with events sorted by UTC instant; ``resolved`` is False
        when any refinement could not reach one-minute precision.
    """
    tz = ZoneInfo(timezone_name)
    candidates = find_candidates(samples)
    logger.info("Refining %d transit candidates from %d samples", len(candidates), len(samples))

    refined = await asyncio.gather(
        *(refine_candidate(candidate, samples, locate, tz) for candidate in candidates)
    )
    scan = TransitScan()
    for event, resolved in refined:
        scan.events.append(event)
        if not resolved:
            scan.resolved = False
    scan.events.sort(key=lambda event: event.utc_datetime)
    if not scan.resolved:
        logger.warning("Some transit instants could not be refined to the minute")
    return scan
