"""How well-placed a body is, scored from a declarative table of checks."""

from __future__ import annotations

import logging
from collections.abc import Callable, Collection
from dataclasses import dataclass
from typing import Literal

from almanac.schemas.astrology import HappinessLevel
from almanac.schemas.ephemeris import BodyPosition, Chart

from celestial.aspects import check_all_aspects
from celestial.bodies import HARD_ASPECTS, NON_TRADITIONAL_BODIES
from celestial.dignity import is_domicile, is_exalted, is_in_fall

logger = logging.getLogger(__name__)

HAPPINESS_ORB = 7.0

HAPPINESS_EMOJI: dict[HappinessLevel, str] = {
    HappinessLevel.ELATED: "🤩",
    HappinessLevel.HAPPY: "😊",
    HappinessLevel.NEUTRAL: "😐",
    HappinessLevel.SAD: "😔",
    HappinessLevel.ANGUISHED: "😰",
}

Predicate = Callable[[Chart, BodyPosition, str], bool]


@dataclass(frozen=True)
class HappinessCheck:
    """One pro or con; never evaluated for bodies in ``excluded_bodies``."""

    name: str
    polarity: Literal["pro", "con"]
    predicate: Predicate
    excluded_bodies: Collection[str] = frozenset()

    def applies_to(self, body: str) -> bool:
        return body not in self.excluded_bodies


def _partner(chart: Chart, body: str) -> BodyPosition | None:
    position = chart.get(body)
    if position is None or position.error:
        return None
    return position


def _any_aspect_with(partner_body: str) -> Predicate:
    def predicate(chart: Chart, focus: BodyPosition, _body: str) -> bool:
        partner = _partner(chart, partner_body)
        if partner is None:
            return False
        results = check_all_aspects(focus, partner, HAPPINESS_ORB)
        return any(result.has_aspect for result in results.values())

    return predicate


def _hard_aspect_with(partner_body: str) -> Predicate:
    def predicate(chart: Chart, focus: BodyPosition, _body: str) -> bool:
        partner = _partner(chart, partner_body)
        if partner is None:
            return False
        results = check_all_aspects(focus, partner, HAPPINESS_ORB)
        return any(results[name].has_aspect for name in HARD_ASPECTS)

    return predicate


def _is_ruler(_chart: Chart, focus: BodyPosition, body: str) -> bool:
    return is_domicile(body, focus.zodiac_sign_name)


def _is_exalted(_chart: Chart, focus: BodyPosition, body: str) -> bool:
    return is_exalted(body, focus.zodiac_sign_name)


def _is_in_fall(_chart: Chart, focus: BodyPosition, body: str) -> bool:
    return is_in_fall(body, focus.zodiac_sign_name)


HAPPINESS_CHECKS: tuple[HappinessCheck, ...] = (
    HappinessCheck("ruler", "pro", _is_ruler, NON_TRADITIONAL_BODIES),
    HappinessCheck("exalted", "pro", _is_exalted, NON_TRADITIONAL_BODIES),
    HappinessCheck("aspect_jupiter", "pro", _any_aspect_with("jupiter"), frozenset({"jupiter"})),
    HappinessCheck("aspect_venus", "pro", _any_aspect_with("venus"), frozenset({"venus"})),
    HappinessCheck("fall", "con", _is_in_fall, NON_TRADITIONAL_BODIES),
    HappinessCheck("hard_aspect_mars", "con", _hard_aspect_with("mars"), frozenset({"mars"})),
    HappinessCheck("hard_aspect_saturn", "con", _hard_aspect_with("saturn"), frozenset({"saturn"})),
)


def count_checks(chart: Chart, body: str) -> tuple[int, int]:
    """Return (pros, cons) matched by ``body`` within ``chart``."""
    focus = chart[body]
    pros = cons = 0
    for check in HAPPINESS_CHECKS:
        if not check.applies_to(body):
            continue
        if not check.predicate(chart, focus, body):
            continue
        if check.polarity == "pro":
            pros += 1
        else:
            cons += 1
    return pros, cons


def classify(pros: int, cons: int) -> HappinessLevel:
    """Only cons make a body unhappy; pros offset them."""
    if cons == 0:
        if pros >= 3:
            return HappinessLevel.ELATED
        if pros >= 1:
            return HappinessLevel.HAPPY
        return HappinessLevel.NEUTRAL

    net = pros - cons
    if net >= 1:
        return HappinessLevel.HAPPY
    if net == 0:
        return HappinessLevel.NEUTRAL
    if net == -1:
        return HappinessLevel.SAD
    return HappinessLevel.ANGUISHED


def planet_happiness(chart: Chart, body: str) -> HappinessLevel:
    """Happiness level of one body; missing or erroneous bodies are neutral."""
    body = body.lower()
    focus = chart.get(body)
    if focus is None or focus.error:
        return HappinessLevel.NEUTRAL
    pros, cons = count_checks(chart, body)
    logger.debug("Happiness for %s: pros=%d cons=%d", body, pros, cons)
    return classify(pros, cons)


def chart_happiness(chart: Chart) -> dict[str, HappinessLevel]:
    return {body: planet_happiness(chart, body) for body in chart}
