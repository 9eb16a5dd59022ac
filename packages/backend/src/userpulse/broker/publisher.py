"""Event publisher — hands domain events to the exchange.

Learn: Services call publish() after the database confirms or denies a
write. The publisher keeps no local state: it encodes the event, finds
the queues bound to its routing key, and XADDs the message to all of
them in a single pipeline round-trip.

There is no retry here. A PublishError means the caller must not assume
the event was delivered; what to do about it is the caller's decision.
"""

from typing import Optional

import redis.asyncio as aioredis
import structlog
from pydantic import BaseModel
from redis.exceptions import RedisError

from userpulse.broker.connection import get_redis
from userpulse.broker.topology import Topology, queue_key
from userpulse.config import settings
from userpulse.events.codec import encode_event
from userpulse.events.errors import PublishError, PublishErrorKind
from userpulse.events.types import routing_key_for

logger = structlog.get_logger()


class EventPublisher:
    """Publishes events to a Redis-backed direct exchange."""

    def __init__(self, redis: aioredis.Redis, topology: Topology, maxlen: int = 0):
        self.redis = redis
        self.topology = topology
        self.maxlen = maxlen or None

    async def publish(self, event: BaseModel) -> int:
        """Publish one event. Returns the number of queues it was routed to."""
        routing_key = routing_key_for(event)
        body = encode_event(event)

        try:
            queues = await self.redis.smembers(self.topology.binding_key(routing_key))
            if not queues:
                logger.warning(
                    "publisher.unroutable",
                    exchange=self.topology.exchange,
                    routing_key=routing_key,
                )
                return 0

            fields = {
                "body": body,
                "routing_key": routing_key,
                "content_type": "application/json",
            }
            async with self.redis.pipeline(transaction=True) as pipe:
                for queue in sorted(queues):
                    pipe.xadd(queue_key(queue), fields, maxlen=self.maxlen, approximate=True)
                await pipe.execute()
        except RedisError as e:
            raise PublishError(PublishErrorKind.BROKER_UNAVAILABLE, str(e)) from e

        logger.info(
            "publisher.published",
            exchange=self.topology.exchange,
            routing_key=routing_key,
            queues=len(queues),
        )
        return len(queues)


def get_publisher() -> Optional[EventPublisher]:
    """FastAPI dependency — a publisher on the shared connection, or None without Redis."""
    try:
        r = get_redis()
    except RuntimeError:
        return None
    return EventPublisher(r, Topology.from_settings(settings), maxlen=settings.queue_maxlen)
