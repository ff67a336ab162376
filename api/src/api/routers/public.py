"""Public API endpoints."""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime
from typing import Annotated

from almanac.config import get_settings
from almanac.schemas.astrology import AspectSet, Dignity, HappinessLevel
from almanac.schemas.calendar import YearDataBundle
from almanac.schemas.ephemeris import BodyPosition
from almanac.schemas.planetary_hours import PlanetaryHoursData
from almanac.services.planetary_hours import PlanetaryHoursService
from celestial.aspects import aspect_set
from celestial.bodies import DEFAULT_ORB, SIGNS
from celestial.dignity import dignities_for, sign_ruler
from celestial.happiness import HAPPINESS_EMOJI, planet_happiness
from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response
from pipeline.orchestrator import YearBundleService
from pydantic import BaseModel, Field

from api.dependencies import get_planetary_hours_service, get_year_bundle_service

logger = logging.getLogger(__name__)

router = APIRouter()

YearPath = Annotated[int, Path(ge=1, le=9999)]


class AspectRequest(BaseModel):
    body_a: BodyPosition
    body_b: BodyPosition
    orb: float = Field(default=DEFAULT_ORB, ge=0.0, le=30.0)


class HappinessRequest(BaseModel):
    chart: dict[str, BodyPosition]
    body: str


class HappinessResponse(BaseModel):
    body: str
    level: HappinessLevel
    emoji: str


class DignityRequest(BaseModel):
    body: str
    sign: str


class DignityResponse(BaseModel):
    body: str
    sign: str
    dignities: list[Dignity]
    sign_ruler: str | None


def _location(latitude: float | None, longitude: float | None) -> tuple[float, float]:
    settings = get_settings()
    return (
        settings.default_latitude if latitude is None else latitude,
        settings.default_longitude if longitude is None else longitude,
    )


@router.get("/year/{year}", response_model=YearDataBundle)
async def get_year(
    year: YearPath,
    latitude: float | None = Query(default=None, ge=-90, le=90),
    longitude: float | None = Query(default=None, ge=-180, le=180),
    service: YearBundleService = Depends(get_year_bundle_service),
):
    lat, lon = _location(latitude, longitude)
    return await service.get_year_bundle(year, lat, lon)


@router.post("/year/{year}/refresh", response_model=YearDataBundle)
async def refresh_year(
    year: YearPath,
    latitude: float | None = Query(default=None, ge=-90, le=90),
    longitude: float | None = Query(default=None, ge=-180, le=180),
    service: YearBundleService = Depends(get_year_bundle_service),
):
    lat, lon = _location(latitude, longitude)
    logger.info("Refreshing year data for %s at (%s, %s)", year, lat, lon)
    return await service.refresh_year_bundle(year, lat, lon)


@router.delete("/year/{year}", status_code=204)
async def clear_year(
    year: YearPath,
    latitude: float | None = Query(default=None, ge=-90, le=90),
    longitude: float | None = Query(default=None, ge=-180, le=180),
    service: YearBundleService = Depends(get_year_bundle_service),
):
    lat, lon = _location(latitude, longitude)
    await service.cache.invalidate(year, lat, lon)
    return Response(status_code=204)


@router.get("/planetary-hours", response_model=PlanetaryHoursData)
async def get_planetary_hours(
    day: date | None = Query(default=None, alias="date"),
    latitude: float | None = Query(default=None, ge=-90, le=90),
    longitude: float | None = Query(default=None, ge=-180, le=180),
    service: PlanetaryHoursService = Depends(get_planetary_hours_service),
):
    lat, lon = _location(latitude, longitude)
    target = day or datetime.now(UTC).date()
    return await service.get_planetary_hours(target, lat, lon)


@router.post("/aspects", response_model=AspectSet)
async def get_aspects(payload: AspectRequest):
    if payload.body_a.error or payload.body_b.error:
        raise HTTPException(status_code=400, detail="Both positions must be available")
    return aspect_set(payload.body_a, payload.body_b, payload.orb)


@router.post("/happiness", response_model=HappinessResponse)
async def get_happiness(payload: HappinessRequest):
    body = payload.body.strip().lower()
    if not body:
        raise HTTPException(status_code=400, detail="Body is required")
    chart = {name.lower(): position for name, position in payload.chart.items()}
    level = planet_happiness(chart, body)
    return HappinessResponse(body=body, level=level, emoji=HAPPINESS_EMOJI[level])


@router.post("/dignities", response_model=DignityResponse)
async def get_dignities(payload: DignityRequest):
    sign = payload.sign.strip().capitalize()
    if sign not in SIGNS:
        raise HTTPException(status_code=400, detail=f"Unknown sign '{payload.sign}'")
    body = payload.body.strip().lower()
    return DignityResponse(
        body=body,
        sign=sign,
        dignities=dignities_for(body, sign),
        sign_ruler=sign_ruler(sign),
    )
