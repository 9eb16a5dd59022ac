"""Test fixtures — in-memory database, mocked broker/cache, fresh hub.

Learn: Testing pattern for async SQLAlchemy + FastAPI without services:

1. Each test gets its own in-memory SQLite database (sqlite+aiosqlite),
   created from the ORM models, so tests never see each other's rows.
2. Redis never runs in tests. The publisher and cache dependencies are
   overridden with MagicMock/AsyncMock doubles, which also lets tests
   assert exactly which events were published.
3. Each test gets a fresh FanoutHub with short timeouts, installed as the
   process-wide hub so the app and the test share it.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from userpulse.broker.publisher import EventPublisher, get_publisher
from userpulse.cache import RedisCache, get_user_cache
from userpulse.db.engine import get_db
from userpulse.db.models import Base
from userpulse.main import app
from userpulse.realtime import hub as hub_module
from userpulse.realtime.hub import FanoutHub

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture()
async def db_session():
    """Per-test session on a brand new in-memory database."""
    engine = create_async_engine(
        TEST_DB_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session = AsyncSession(engine, expire_on_commit=False)
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()


@pytest.fixture()
def publisher():
    """Publisher double — every publish "succeeds" and routes to one queue."""
    pub = MagicMock(spec=EventPublisher)
    pub.publish = AsyncMock(return_value=1)
    return pub


@pytest.fixture()
def mock_cache():
    """Cache double that always misses, so reads go through to the database."""

    async def compute_through(key, compute):
        return await compute()

    cache = MagicMock(spec=RedisCache)
    cache.get_or_compute = AsyncMock(side_effect=compute_through)
    cache.put = AsyncMock(return_value=None)
    cache.evict = AsyncMock(return_value=None)
    return cache


@pytest.fixture()
def hub(monkeypatch):
    """A fresh process-wide hub with short delivery timeouts."""
    fresh = FanoutHub(send_timeout=0.05, queue_size=10)
    monkeypatch.setattr(hub_module, "hub", fresh)
    return fresh


@pytest_asyncio.fixture()
async def client(db_session, publisher, mock_cache, hub):
    """HTTP client with the database, publisher, and cache overridden."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_publisher] = lambda: publisher
    app.dependency_overrides[get_user_cache] = lambda: mock_cache

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
