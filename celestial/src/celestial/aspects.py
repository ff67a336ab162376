"""Degree-based and whole-sign aspect detection between two bodies."""

from __future__ import annotations

import logging

from almanac.schemas.astrology import AspectKind, AspectResult, AspectSet
from almanac.schemas.ephemeris import BodyPosition

from celestial.bodies import ASPECT_ANGLES, DEFAULT_ORB, WHOLE_SIGN_STEPS
from celestial.geometry import INVALID_SIGN_DISTANCE, angular_distance, sign_distance

logger = logging.getLogger(__name__)

WHOLE_SIGN_PREFIX = "whole sign "


class InvalidSignError(ValueError):
    """A position carries a sign name outside the twelve canonical signs."""


def check_aspect(
    body1: BodyPosition,
    body2: BodyPosition,
    angle: float,
    orb: float = DEFAULT_ORB,
    kind: AspectKind | None = None,
) -> AspectResult:
    """Check whether two bodies are within ``orb`` degrees of ``angle`` apart."""
    separation = angular_distance(body1.longitude, body2.longitude)
    residual = abs(separation - angle)
    if kind is None:
        kind = _kind_for_angle(angle)
    return AspectResult(
        kind=kind,
        has_aspect=residual <= orb,
        orb=residual,
        exact_separation=separation,
    )


def check_conjunct(body1: BodyPosition, body2: BodyPosition, orb: float = DEFAULT_ORB) -> AspectResult:
    return check_aspect(body1, body2, ASPECT_ANGLES["conjunct"], orb)


def check_opposition(body1: BodyPosition, body2: BodyPosition, orb: float = DEFAULT_ORB) -> AspectResult:
    return check_aspect(body1, body2, ASPECT_ANGLES["opposition"], orb)


def check_square(body1: BodyPosition, body2: BodyPosition, orb: float = DEFAULT_ORB) -> AspectResult:
    return check_aspect(body1, body2, ASPECT_ANGLES["square"], orb)


def check_trine(body1: BodyPosition, body2: BodyPosition, orb: float = DEFAULT_ORB) -> AspectResult:
    return check_aspect(body1, body2, ASPECT_ANGLES["trine"], orb)


def check_sextile(body1: BodyPosition, body2: BodyPosition, orb: float = DEFAULT_ORB) -> AspectResult:
    return check_aspect(body1, body2, ASPECT_ANGLES["sextile"], orb)


def check_whole_sign_aspect(
    body1: BodyPosition,
    body2: BodyPosition,
    kind: AspectKind | str,
) -> AspectResult:
    """Sign-based aspect check; binary, so no orb is reported.

    Raises:
        InvalidSignError: if either body carries an unknown sign name.
    """
    kind = AspectKind(kind)
    steps = sign_distance(body1.zodiac_sign_name, body2.zodiac_sign_name)
    if steps == INVALID_SIGN_DISTANCE:
        raise InvalidSignError(
            f"Unknown sign in pair ({body1.zodiac_sign_name!r}, {body2.zodiac_sign_name!r})"
        )
    has_aspect = steps == WHOLE_SIGN_STEPS[kind.value]
    return AspectResult(
        kind=kind,
        has_aspect=has_aspect,
        exact_separation=angular_distance(body1.longitude, body2.longitude) if has_aspect else None,
        whole_sign=True,
    )


def check_all_aspects(
    body1: BodyPosition,
    body2: BodyPosition,
    orb: float = DEFAULT_ORB,
) -> dict[str, AspectResult]:
    return {
        name: check_aspect(body1, body2, angle, orb, kind=AspectKind(name))
        for name, angle in ASPECT_ANGLES.items()
    }


def check_all_whole_sign_aspects(body1: BodyPosition, body2: BodyPosition) -> dict[str, AspectResult]:
    return {name: check_whole_sign_aspect(body1, body2, name) for name in WHOLE_SIGN_STEPS}


def active_whole_sign_aspects(body1: BodyPosition, body2: BodyPosition) -> list[str]:
    results = check_all_whole_sign_aspects(body1, body2)
    return [f"{WHOLE_SIGN_PREFIX}{name}" for name, result in results.items() if result.has_aspect]


def active_aspects(
    body1: BodyPosition,
    body2: BodyPosition,
    orb: float = DEFAULT_ORB,
) -> list[str]:
    """Names of aspects currently in effect between two bodies.

    With a tight orb (3° or less) whole-sign aspects are added, prefixed with
    'whole sign ', unless the same aspect already holds by degree.
    """
    degree_results = check_all_aspects(body1, body2, orb)
    active = [name for name, result in degree_results.items() if result.has_aspect]
    if orb > DEFAULT_ORB:
        return active

    try:
        whole_sign = active_whole_sign_aspects(body1, body2)
    except InvalidSignError as exc:
        logger.warning("Skipping whole-sign aspects: %s", exc)
        return active

    for name in whole_sign:
        base_name = name.removeprefix(WHOLE_SIGN_PREFIX)
        if base_name not in active and name not in active:
            active.append(name)
    return active


def aspect_set(
    body1: BodyPosition,
    body2: BodyPosition,
    orb: float = DEFAULT_ORB,
) -> AspectSet:
    """Every degree-based and whole-sign check for a pair, plus the active list."""
    try:
        whole_sign: dict[str, AspectResult] | None = check_all_whole_sign_aspects(body1, body2)
    except InvalidSignError as exc:
        logger.warning("Whole-sign aspects unavailable: %s", exc)
        whole_sign = None
    return AspectSet(
        degree=check_all_aspects(body1, body2, orb),
        whole_sign=whole_sign,
        active=active_aspects(body1, body2, orb),
    )


def _kind_for_angle(angle: float) -> AspectKind:
    for name, exact in ASPECT_ANGLES.items():
        if exact == angle:
            return AspectKind(name)
    raise ValueError(f"No aspect is defined at {angle}°")
