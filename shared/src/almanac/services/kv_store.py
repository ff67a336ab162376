"""String-keyed blob stores backing the year-data cache."""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import UTC, datetime
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from almanac.database import get_session
from almanac.models import CacheEntry

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class KeyValueStore(Protocol):
    """Minimal persistence contract; no transactional guarantees."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def keys(self, prefix: str = "") -> list[str]: ...


class MemoryKeyValueStore:
    """In-process store, used for tests and the memory cache backend."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self, prefix: str = "") -> list[str]:
        return [key for key in self._data if key.startswith(prefix)]


class SqlKeyValueStore:
    """Store backed by the ``cache_entries`` table."""

    def __init__(self, session_factory: SessionFactory = get_session) -> None:
        self._session_factory = session_factory

    async def get(self, key: str) -> str | None:
        async with self._session_factory() as session:
            row = await session.get(CacheEntry, key)
            return row.value if row is not None else None

    async def set(self, key: str, value: str) -> None:
        async with self._session_factory() as session:
            row = await session.get(CacheEntry, key)
            if row is None:
                row = CacheEntry(key=key, value=value)
                session.add(row)
            else:
                row.value = value
                row.updated_at = datetime.now(UTC)
            await session.flush()

    async def delete(self, key: str) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(CacheEntry).where(CacheEntry.key == key))

    async def keys(self, prefix: str = "") -> list[str]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(CacheEntry.key).where(CacheEntry.key.startswith(prefix, autoescape=True))
            )
            return list(result.scalars().all())
