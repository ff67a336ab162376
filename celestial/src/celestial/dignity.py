"""Essential dignity tables and lookups."""

from __future__ import annotations

from almanac.schemas.astrology import Dignity, DignityKind

from celestial.bodies import NON_TRADITIONAL_BODIES


def _rows(kind: DignityKind, table: dict[str, tuple[str, ...]]) -> tuple[Dignity, ...]:
    return tuple(Dignity(kind=kind, body=body, sign=sign) for body, signs in table.items() for sign in signs)


DOMICILES: dict[str, tuple[str, ...]] = {
    "sun": ("Leo",),
    "moon": ("Cancer",),
    "mercury": ("Gemini", "Virgo"),
    "venus": ("Taurus", "Libra"),
    "mars": ("Aries", "Scorpio"),
    "jupiter": ("Sagittarius", "Pisces"),
    "saturn": ("Capricorn", "Aquarius"),
}

EXALTATIONS: dict[str, tuple[str, ...]] = {
    "sun": ("Aries",),
    "moon": ("Taurus",),
    "mercury": ("Virgo",),
    "venus": ("Pisces",),
    "mars": ("Capricorn",),
    "jupiter": ("Cancer",),
    "saturn": ("Libra",),
}

DETRIMENTS: dict[str, tuple[str, ...]] = {
    "sun": ("Aquarius",),
    "moon": ("Capricorn",),
    "mercury": ("Sagittarius", "Pisces"),
    "venus": ("Scorpio", "Aries"),
    "mars": ("Libra", "Taurus"),
    "jupiter": ("Gemini", "Virgo"),
    "saturn": ("Cancer", "Leo"),
}

FALLS: dict[str, tuple[str, ...]] = {
    "sun": ("Libra",),
    "moon": ("Scorpio",),
    "mercury": ("Pisces",),
    "venus": ("Virgo",),
    "mars": ("Cancer",),
    "jupiter": ("Capricorn",),
    "saturn": ("Aries",),
}

DIGNITIES: tuple[Dignity, ...] = (
    _rows(DignityKind.DOMICILE, DOMICILES)
    + _rows(DignityKind.EXALTATION, EXALTATIONS)
    + _rows(DignityKind.DETRIMENT, DETRIMENTS)
    + _rows(DignityKind.FALL, FALLS)
)

# Traditional sign rulers
SIGN_RULERS: dict[str, str] = {sign: body for body, signs in DOMICILES.items() for sign in signs}


def dignities_for(body: str, sign: str) -> list[Dignity]:
    """All dignity rows matching a body in a sign."""
    body = body.lower()
    return [d for d in DIGNITIES if d.body == body and d.sign == sign]


def has_dignity(body: str, sign: str, kind: DignityKind) -> bool:
    body = body.lower()
    if body in NON_TRADITIONAL_BODIES:
        return False
    return any(d.kind is kind for d in dignities_for(body, sign))


def is_domicile(body: str, sign: str) -> bool:
    return has_dignity(body, sign, DignityKind.DOMICILE)


def is_exalted(body: str, sign: str) -> bool:
    return has_dignity(body, sign, DignityKind.EXALTATION)


def is_in_detriment(body: str, sign: str) -> bool:
    return has_dignity(body, sign, DignityKind.DETRIMENT)


def is_in_fall(body: str, sign: str) -> bool:
    return has_dignity(body, sign, DignityKind.FALL)


def sign_ruler(sign: str) -> str | None:
    """Traditional ruler of a sign, or None for an unknown sign name."""
    return SIGN_RULERS.get(sign)
