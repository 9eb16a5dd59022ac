"""Health check endpoint.

Learn: Probes the two backing services (the SQL database and Redis)
and reports how many notification streams this process is serving.
The API stays up when a probe fails; the status just turns `degraded`.
"""

from typing import Awaitable, Callable

import structlog
from fastapi import APIRouter
from sqlalchemy import text

from userpulse import __version__
from userpulse.broker.connection import get_redis
from userpulse.db.engine import engine
from userpulse.realtime.hub import get_hub

logger = structlog.get_logger()
router = APIRouter()


async def _probe(name: str, check: Callable[[], Awaitable[object]]) -> str:
    try:
        await check()
    except Exception as e:
        logger.warning("health.probe_failed", dependency=name, error=str(e))
        return f"error: {e}"
    return "ok"


async def _ping_database() -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def _ping_redis() -> None:
    await get_redis().ping()


@router.get("/health")
async def health_check():
    """Dependency status plus the live subscriber count."""
    postgres = await _probe("postgres", _ping_database)
    redis = await _probe("redis", _ping_redis)

    return {
        "status": "healthy" if postgres == redis == "ok" else "degraded",
        "server": "ok",
        "version": __version__,
        "postgres": postgres,
        "redis": redis,
        "subscribers": len(get_hub()),
    }
