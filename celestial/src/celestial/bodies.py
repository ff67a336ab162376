"""Body definitions, sign data, and fixed astrological tables."""

from __future__ import annotations

# Celestial body IDs for pyswisseph
# These map to swisseph constants
BODY_IDS: dict[str, int] = {
    "sun": 0,  # SE_SUN
    "moon": 1,  # SE_MOON
    "mercury": 2,  # SE_MERCURY
    "venus": 3,  # SE_VENUS
    "mars": 4,  # SE_MARS
    "jupiter": 5,  # SE_JUPITER
    "saturn": 6,  # SE_SATURN
    "uranus": 7,  # SE_URANUS
    "neptune": 8,  # SE_NEPTUNE
    "pluto": 9,  # SE_PLUTO
    "north_node": 11,  # SE_TRUE_NODE
}

ALL_BODIES = list(BODY_IDS.keys())

CLASSICAL_BODIES = ["sun", "moon", "mercury", "venus", "mars", "jupiter", "saturn"]

# Modern planets and the node have no traditional rulership, exaltation or fall
NON_TRADITIONAL_BODIES = frozenset({"uranus", "neptune", "pluto", "north_node"})

# Bodies scanned for ingresses, stations and aspects (the Moon moves too fast)
EVENT_BODIES = [
    "sun",
    "mercury",
    "venus",
    "mars",
    "jupiter",
    "saturn",
    "uranus",
    "neptune",
    "pluto",
]

# Bodies drawn on the yearly line chart
LINE_BODIES = [
    "sun",
    "moon",
    "mercury",
    "venus",
    "mars",
    "jupiter",
    "saturn",
    "uranus",
    "neptune",
    "pluto",
    "north_node",
]

# Zodiac signs in order
SIGNS = [
    "Aries",
    "Taurus",
    "Gemini",
    "Cancer",
    "Leo",
    "Virgo",
    "Libra",
    "Scorpio",
    "Sagittarius",
    "Capricorn",
    "Aquarius",
    "Pisces",
]

# Aspect definitions: name -> exact angle
ASPECT_ANGLES: dict[str, float] = {
    "conjunct": 0.0,
    "sextile": 60.0,
    "square": 90.0,
    "trine": 120.0,
    "opposition": 180.0,
}

# Sign steps separating two bodies for each whole-sign aspect
WHOLE_SIGN_STEPS: dict[str, int] = {
    "conjunct": 0,
    "sextile": 2,
    "square": 3,
    "trine": 4,
    "opposition": 6,
}

HARD_ASPECTS = frozenset({"conjunct", "opposition", "square"})

DEFAULT_ORB = 3.0

# Chaldean order, slowest to fastest
CHALDEAN_ORDER = ["saturn", "jupiter", "mars", "sun", "venus", "mercury", "moon"]

# Day rulers keyed by Python weekday (Monday == 0)
DAY_RULERS: dict[int, str] = {
    0: "moon",
    1: "mars",
    2: "mercury",
    3: "jupiter",
    4: "venus",
    5: "saturn",
    6: "sun",
}

BODY_SYMBOLS: dict[str, str] = {
    "saturn": "♄",
    "jupiter": "♃",
    "mars": "♂",
    "sun": "☉",
    "venus": "♀",
    "mercury": "☿",
    "moon": "☽",
}

BODY_COLORS: dict[str, str] = {
    "sun": "orange",
    "moon": "cornflowerblue",
    "mercury": "forestgreen",
    "venus": "violet",
    "mars": "red",
    "jupiter": "gold",
    "saturn": "#666666",
    "uranus": "steelblue",
    "neptune": "indigo",
    "pluto": "saddlebrown",
    "north_node": "#444444",
}
DEFAULT_BODY_COLOR = "#e6e6fa"


def longitude_to_sign(longitude: float) -> tuple[str, float]:
    """Convert ecliptic longitude to sign and degree within sign."""
    longitude = longitude % 360.0
    sign_index = int(longitude / 30.0)
    degree = longitude - (sign_index * 30.0)
    return SIGNS[sign_index], degree


def format_degree(longitude: float) -> str:
    """Render the position within its sign as D°M'S", truncating each part."""
    degree = longitude % 30.0
    minutes = (degree % 1) * 60
    seconds = (minutes % 1) * 60
    return f"{int(degree)}°{int(minutes)}'{int(seconds)}\""


def body_color(body: str) -> str:
    return BODY_COLORS.get(body, DEFAULT_BODY_COLOR)
