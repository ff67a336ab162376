"""Health check."""

from almanac.config import get_settings
from almanac.database import get_session
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

router = APIRouter()


@router.get("/health")
async def health_check():
    return {"status": "ok", "service": "almanac-api"}


@router.get("/health/ready")
async def readiness_check():
    backend = get_settings().cache_backend_name
    if backend != "database":
        return {"status": "ready", "cache_backend": backend}
    try:
        async with get_session() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "cache_backend": backend, "error": str(exc)},
        )
    return {"status": "ready", "cache_backend": backend}
