"""Per-body longitude series for ephemeris line charts."""

from __future__ import annotations

from collections.abc import Sequence

from almanac.schemas.calendar import BodyLine, LinePoint, LineSeries
from almanac.schemas.ephemeris import EphemerisSample

from celestial.bodies import LINE_BODIES, body_color


def build_line_series(
    samples: Sequence[EphemerisSample],
    bodies: Sequence[str] = LINE_BODIES,
) -> LineSeries:
    """Chart series for every body present in the first sample.

    Samples where a body is missing or erroneous leave a gap in that body's line.
    """
    if not samples:
        return LineSeries()

    first = samples[0].positions
    charted = [body for body in bodies if body in first]
    lines = []
    for body in charted:
        points = []
        for sample in samples:
            position = sample.positions.get(body)
            if position is None or position.error:
                continue
            points.append(LinePoint(at=sample.at, longitude=position.longitude))
        lines.append(BodyLine(body=body, color=body_color(body), points=points))

    return LineSeries(dates=[sample.at for sample in samples], bodies=lines)
