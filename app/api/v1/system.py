"""System health endpoint — checks connectivity to the database and Redis."""

import logging
import time

from fastapi import APIRouter
from pydantic import BaseModel
from redis.asyncio import from_url
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import Session
from app.core.config import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/system", tags=["system"])

settings = get_settings()


class ServiceHealth(BaseModel):
    status: str  # "ok" or "error"
    detail: str | None = None
    latency_ms: int | None = None


class HealthResponse(BaseModel):
    status: str
    database: ServiceHealth
    redis: ServiceHealth


@router.get("/health", response_model=HealthResponse)
async def system_health(session: Session) -> HealthResponse:
    """Check connectivity to the database and the worker's Redis."""
    db = await _check_database(session)
    rd = await _check_redis()

    overall = "ok" if all(s.status == "ok" for s in (db, rd)) else "degraded"
    return HealthResponse(status=overall, database=db, redis=rd)


async def _check_database(session: AsyncSession) -> ServiceHealth:
    try:
        t0 = time.monotonic()
        await session.execute(text("SELECT 1"))
        latency = int((time.monotonic() - t0) * 1000)
        return ServiceHealth(status="ok", latency_ms=latency)
    except SQLAlchemyError as exc:
        logger.warning("Database health check failed: %s", exc)
        return ServiceHealth(status="error", detail=str(exc)[:200])


async def _check_redis() -> ServiceHealth:
    try:
        t0 = time.monotonic()
        redis = from_url(settings.redis_url, decode_responses=True)
        try:
            pong = await redis.ping()
        finally:
            await redis.aclose()
        latency = int((time.monotonic() - t0) * 1000)
        return ServiceHealth(status="ok" if pong else "error", latency_ms=latency)
    except (RedisError, OSError) as exc:
        logger.warning("Redis health check failed: %s", exc)
        return ServiceHealth(status="error", detail=str(exc)[:200])
