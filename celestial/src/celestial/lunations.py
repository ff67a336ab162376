"""Lunation series and eclipse correlation."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from almanac.schemas.calendar import EventPosition, LunationEvent
from almanac.schemas.ephemeris import BodyPosition, Eclipse, LunarPhase

logger = logging.getLogger(__name__)

ECLIPSE_WINDOW = timedelta(hours=24)

NEW_MOON = "New Moon"
FULL_MOON = "Full Moon"

# Eclipse kind each phase may carry
PHASE_ECLIPSE_KIND: dict[str, str] = {
    NEW_MOON: "solar",
    FULL_MOON: "lunar",
}

# Keys that may hold an eclipse instant, in order of precedence
ECLIPSE_DATE_KEYS = (
    "calendarDate",
    "date",
    "Date",
    "datetime",
    "Datetime",
    "time",
    "dateTime",
)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z])(?=[A-Z])")
_HAS_OFFSET = re.compile(r"(Z|[+-]\d{2}:?\d{2})$")


def normalize_phase_name(name: str) -> str:
    """'NewMoon' -> 'New Moon'; names already spaced are left alone."""
    return _CAMEL_BOUNDARY.sub(" ", name.strip())


def _eclipse_date_value(record: Mapping[str, Any]) -> Any:
    events = record.get("events")
    greatest = events.get("greatest") if isinstance(events, Mapping) else None
    if isinstance(greatest, Mapping):
        for key in ("date", "Date"):
            if greatest.get(key):
                return greatest[key]
    for key in ECLIPSE_DATE_KEYS:
        if record.get(key):
            return record[key]
    return None


def parse_eclipse_instant(record: Mapping[str, Any]) -> datetime | None:
    """Instant of greatest eclipse, assumed UTC when no offset is given.

    Returns None for records without a usable timestamp.
    """
    value = _eclipse_date_value(record)
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not _HAS_OFFSET.search(text):
        text = f"{text}Z"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def build_eclipse_index(
    solar: Iterable[Mapping[str, Any]],
    lunar: Iterable[Mapping[str, Any]],
) -> dict[datetime, Eclipse]:
    """Map eclipse instant -> eclipse, skipping malformed records."""
    index: dict[datetime, Eclipse] = {}
    for kind, records in (("lunar", lunar), ("solar", solar)):
        for record in records:
            at = parse_eclipse_instant(record)
            if at is None:
                logger.warning("Skipping %s eclipse record without a valid date: %s", kind, record)
                continue
            index[at] = Eclipse(kind=kind, at=at)
    return index


def match_eclipse(
    phase_name: str,
    at: datetime,
    index: Mapping[datetime, Eclipse],
    window: timedelta = ECLIPSE_WINDOW,
) -> Eclipse | None:
    """Closest eclipse of the phase's kind strictly within ``window``."""
    wanted = PHASE_ECLIPSE_KIND.get(phase_name)
    if wanted is None:
        return None

    best: Eclipse | None = None
    best_gap = window
    for eclipse in index.values():
        if eclipse.kind != wanted:
            continue
        gap = abs(at - eclipse.at)
        if gap < best_gap:
            best = eclipse
            best_gap = gap
    return best


def moon_event_position(position: BodyPosition | None) -> EventPosition | None:
    if position is None or position.error:
        return None
    return EventPosition(
        degree=position.degree_within_sign,
        degree_formatted=position.degree_formatted,
        zodiac_sign_name=position.zodiac_sign_name,
    )


def correlate_lunations(
    phases: Sequence[LunarPhase],
    eclipse_index: Mapping[datetime, Eclipse],
    moon_positions: Sequence[BodyPosition | None],
    timezone_name: str = "UTC",
) -> list[LunationEvent]:
    """Build lunation events tagged with eclipses, sorted by UTC instant.

    Args:
        phases: Lunar phase instants for the year.
        eclipse_index: Output of build_eclipse_index.
        moon_positions: Moon position at each phase instant, aligned with
                        ``phases``; None where the lookup failed.
        timezone_name: Zone used for ``local_datetime``.
    """
    tz = ZoneInfo(timezone_name)
    events: list[LunationEvent] = []
    for idx, phase in enumerate(phases):
        at = phase.at if phase.at.tzinfo else phase.at.replace(tzinfo=UTC)
        at = at.astimezone(UTC)
        name = normalize_phase_name(phase.phase)
        eclipse = match_eclipse(name, at, eclipse_index)
        position = moon_positions[idx] if idx < len(moon_positions) else None
        events.append(
            LunationEvent(
                id=f"lunation-{idx}-{at.isoformat()}",
                title=name,
                utc_datetime=at,
                local_datetime=at.astimezone(tz),
                moon_position=moon_event_position(position),
                is_eclipse=eclipse is not None,
                eclipse_type=eclipse.kind if eclipse else None,
            )
        )

    events.sort(key=lambda event: event.utc_datetime)
    eclipse_count = sum(1 for event in events if event.is_eclipse)
    logger.info("Correlated %d eclipses across %d lunations", eclipse_count, len(events))
    return events
