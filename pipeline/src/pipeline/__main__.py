"""Pipeline entry point for running as a module: python -m pipeline."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import UTC, datetime

from almanac.config import get_settings
from almanac.database import close_engine, get_engine
from almanac.models import Base
from almanac.services.ephemeris_client import SwissEphemeris
from almanac.services.year_cache import create_year_data_cache

from pipeline.orchestrator import YearBundleService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    stream=sys.stdout,
)

logger = logging.getLogger("pipeline")


def _parse_args(argv: list[str]) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(prog="pipeline", description="Warm the year data cache.")
    parser.add_argument("--year", type=int, action="append", dest="years",
                        help="Year to derive (repeatable). Defaults to the current year.")
    parser.add_argument("--lat", type=float, default=settings.default_latitude)
    parser.add_argument("--lon", type=float, default=settings.default_longitude)
    parser.add_argument("--refresh", action="store_true", help="Discard cached data first.")
    return parser.parse_args(argv)


async def _ensure_schema() -> None:
    async with get_engine().begin() as connection:
        await connection.run_sync(Base.metadata.create_all)


async def main(argv: list[str] | None = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    settings = get_settings()
    years = args.years or [datetime.now(UTC).year]

    logger.info("Starting Almanac pipeline for %s at (%s, %s)", years, args.lat, args.lon)
    try:
        if settings.cache_backend_name == "database":
            await _ensure_schema()
        service = YearBundleService(create_year_data_cache(settings), SwissEphemeris(), settings=settings)
        for year in years:
            if args.refresh:
                bundle = await service.refresh_year_bundle(year, args.lat, args.lon)
            else:
                bundle = await service.get_year_bundle(year, args.lat, args.lon)
            logger.info(
                "Year %s ready: %d events, %d lunations, complete=%s",
                year,
                len(bundle.list_events),
                len(bundle.lunations),
                bundle.is_complete,
            )
    except Exception as exc:
        logger.error("Pipeline failed: %s", exc)
        return 1
    finally:
        await close_engine()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
