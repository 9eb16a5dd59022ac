"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown in dependency order:

  startup:  Redis → broker topology → consumer tasks
  shutdown: consumer → live streams → Redis → database engine

Redis is optional at startup. Without it the user and log APIs still
work against the database; only events, caching, and live
notifications are unavailable.
"""

import asyncio
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from userpulse import __version__
from userpulse.api import api_router
from userpulse.config import settings

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    logger.info(
        "userpulse.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from userpulse.broker.connection import close_redis, init_redis, init_stream_redis
    from userpulse.broker.consumer import EventConsumer
    from userpulse.broker.topology import Topology, declare_topology
    from userpulse.realtime.hub import get_hub

    hub = get_hub()
    consumer = None
    consumer_task = None

    try:
        r = await init_redis()
        logger.info("userpulse.redis_connected", url=settings.redis_url)

        # Topology must exist before the consumer reads from it
        topology = Topology.from_settings(settings)
        await declare_topology(r, topology)

        consumer = EventConsumer(
            await init_stream_redis(),
            topology,
            hub,
            consumer_name=settings.consumer_name,
            batch_size=settings.consumer_batch_size,
            block_ms=settings.consumer_block_ms,
            retry_delay=settings.consumer_retry_delay,
            malformed_policy=settings.malformed_message_policy,
        )
        consumer_task = asyncio.create_task(consumer.run())
        logger.info("userpulse.consumer_started")
    except Exception as e:
        logger.warning("userpulse.redis_unavailable", error=str(e))

    yield

    # Shutdown
    logger.info("userpulse.shutdown")

    if consumer is not None:
        consumer.stop()
    if consumer_task is not None:
        consumer_task.cancel()
        try:
            await consumer_task
        except asyncio.CancelledError:
            pass

    # Ends every open SSE response
    hub.close_all()

    await close_redis()

    from userpulse.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="userpulse",
        description="User management with live event notifications",
        version=__version__,
        lifespan=lifespan,
    )

    from userpulse.middleware.request_id import RequestIdMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: userpulse.main:app)
app = create_app()
