"""Angular geometry on the ecliptic circle and the zodiac wheel."""

from __future__ import annotations

from celestial.bodies import SIGNS

INVALID_SIGN_DISTANCE = -1

_SIGN_INDEX = {name: idx for idx, name in enumerate(SIGNS)}


def angular_distance(lon1: float, lon2: float) -> float:
    """Shortest arc between two longitudes already in [0, 360)."""
    diff = abs(lon1 - lon2)
    return min(diff, 360.0 - diff)


def sign_index(sign: str) -> int:
    """Position of a sign on the wheel, or -1 when the name is not canonical."""
    return _SIGN_INDEX.get(sign, INVALID_SIGN_DISTANCE)


def sign_distance(sign1: str, sign2: str) -> int:
    """Minimal number of sign steps (0..6) between two signs.

    Returns INVALID_SIGN_DISTANCE when either name is unknown; that value is a
    data-integrity signal, not a 'no aspect' result.
    """
    idx1 = sign_index(sign1)
    idx2 = sign_index(sign2)
    if idx1 < 0 or idx2 < 0:
        return INVALID_SIGN_DISTANCE
    steps = abs(idx1 - idx2)
    return min(steps, 12 - steps)
