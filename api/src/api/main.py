"""FastAPI application factory."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from almanac.config import get_settings
from almanac.database import close_engine, get_engine
from almanac.models import Base
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.dependencies import close_services
from api.routers import health, public

logger = logging.getLogger(__name__)


async def _ensure_cache_table() -> None:
    settings = get_settings()
    if settings.cache_backend_name != "database":
        return
    engine = get_engine()
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    try:
        await _ensure_cache_table()
        yield
    finally:
        await close_services()
        await close_engine()


def create_app() -> FastAPI:
    app = FastAPI(title="Almanac API", version="0.1.0", lifespan=lifespan)
    settings = get_settings()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(health.router, tags=["health"])
    app.include_router(public.router, prefix="/v1", tags=["public"])
    return app


app = create_app()
