"""SQLAlchemy ORM models for Almanac."""

from almanac.models.base import Base
from almanac.models.cache_entry import CacheEntry

__all__ = [
    "Base",
    "CacheEntry",
]
