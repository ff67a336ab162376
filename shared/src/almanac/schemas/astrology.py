"""Pydantic schemas for aspects, dignities and happiness levels."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class AspectKind(str, Enum):
    """Major aspect kinds."""

    CONJUNCT = "conjunct"
    OPPOSITION = "opposition"
    SQUARE = "square"
    TRINE = "trine"
    SEXTILE = "sextile"


class AspectResult(BaseModel):
    """Outcome of one aspect check between two bodies."""

    kind: AspectKind
    has_aspect: bool
    orb: float | None = Field(default=None, ge=0.0)
    exact_separation: float | None = None
    whole_sign: bool = False


class AspectSet(BaseModel):
    """All aspect checks for one pair of bodies."""

    degree: dict[str, AspectResult]
    whole_sign: dict[str, AspectResult] | None = None
    active: list[str] = Field(default_factory=list)


class DignityKind(str, Enum):
    """Essential dignity kinds."""

    DOMICILE = "domicile"
    EXALTATION = "exaltation"
    DETRIMENT = "detriment"
    FALL = "fall"


class Dignity(BaseModel):
    """One row of the essential dignity table."""

    model_config = {"frozen": True}

    kind: DignityKind
    body: str
    sign: str


class HappinessLevel(str, Enum):
    """How well-placed a body is, from highly positive to strongly negative."""

    ELATED = "elated"
    HAPPY = "happy"
    NEUTRAL = "neutral"
    SAD = "sad"
    ANGUISHED = "anguished"
