"""Pydantic schemas for ephemeris data."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from celestial.bodies import format_degree
from pydantic import BaseModel, Field


class BodyPosition(BaseModel):
    """Immutable position snapshot of one body at one instant."""

    model_config = {"frozen": True}

    longitude: float = Field(ge=0.0, lt=360.0)
    zodiac_sign_name: str
    degree_within_sign: float = Field(ge=0.0, lt=30.0)
    is_retrograde: bool = False
    speed: float = 0.0  # degrees per day
    error: str | None = None

    @property
    def degree_formatted(self) -> str:
        return format_degree(self.longitude)

    @classmethod
    def unavailable(cls, error: str) -> BodyPosition:
        """Placeholder for a body the ephemeris could not resolve."""
        return cls(longitude=0.0, zodiac_sign_name="Aries", degree_within_sign=0.0, error=error)


Chart = dict[str, BodyPosition]


class EphemerisSample(BaseModel):
    """Positions of all requested bodies at a single instant."""

    at: datetime
    positions: dict[str, BodyPosition]


class LunarPhase(BaseModel):
    """A principal lunar phase instant."""

    phase: str  # provider name, e.g. 'NewMoon' or 'New Moon'
    at: datetime


class Eclipse(BaseModel):
    """An eclipse reduced to its kind and instant of greatest eclipse."""

    kind: Literal["solar", "lunar"]
    at: datetime
