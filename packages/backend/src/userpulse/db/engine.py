"""Async engine, session factory, and the per-request session dependency.

Learn: The engine is built from USERPULSE_DATABASE_URL. PostgreSQL
(asyncpg) gets a sized connection pool; SQLite (aiosqlite, for local
runs) can't share connections across tasks the same way, so it gets
SQLAlchemy's default pool for its dialect and no sizing arguments.
"""

from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from userpulse.config import settings


def make_engine(url: str, echo: bool = False) -> AsyncEngine:
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)
    return create_async_engine(
        url,
        echo=echo,
        pool_size=5,
        max_overflow=15,
        pool_pre_ping=True,
    )


engine = make_engine(settings.database_url, echo=settings.debug)

# Objects stay readable after commit; responses are built from them
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency: one session per request, closed afterwards."""
    async with async_session_factory() as session:
        yield session
