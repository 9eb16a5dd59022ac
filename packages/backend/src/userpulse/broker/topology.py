"""Exchange / queue / binding declaration.

Learn: RabbitMQ-style topology mapped onto Redis:
- exchange binding → a Redis SET of queue names per routing key
- queue            → a Redis Stream plus a consumer group

Declaration is idempotent and runs once at startup, before the consumer
begins reading. Publishing to a routing key with no bound queue is not
an error, it just routes nowhere (same as a direct exchange).
"""

from dataclasses import dataclass, field

import redis.asyncio as aioredis
import structlog
from redis.exceptions import ResponseError

from userpulse.config import Settings
from userpulse.events.types import USER_CREATED, USER_CREATION_FAILED

logger = structlog.get_logger()

KEY_PREFIX = "userpulse"


@dataclass(frozen=True)
class QueueBinding:
    """One queue bound to the exchange under one routing key."""
    queue: str
    routing_key: str


@dataclass(frozen=True)
class Topology:
    """Exchange name, consumer group, and the queues bound to the exchange."""
    exchange: str
    group: str = "notifications"
    bindings: tuple[QueueBinding, ...] = field(default_factory=tuple)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Topology":
        return cls(
            exchange=settings.exchange_name,
            group=settings.consumer_group,
            bindings=(
                QueueBinding(queue=settings.created_queue, routing_key=USER_CREATED),
                QueueBinding(queue=settings.failed_queue, routing_key=USER_CREATION_FAILED),
            ),
        )

    @property
    def queues(self) -> list[str]:
        """Bound queue names, in declaration order, without duplicates."""
        return list(dict.fromkeys(b.queue for b in self.bindings))

    def binding_key(self, routing_key: str) -> str:
        return f"{KEY_PREFIX}:exchange:{self.exchange}:{routing_key}"


def queue_key(queue: str) -> str:
    """Redis stream key backing a queue."""
    return f"{KEY_PREFIX}:queue:{queue}"


def dead_letter_key(queue: str) -> str:
    return f"{KEY_PREFIX}:queue:{queue}.dead"


async def declare_topology(r: aioredis.Redis, topology: Topology) -> None:
    """Declare bindings, queues, and consumer groups (safe to call repeatedly)."""
    for binding in topology.bindings:
        await r.sadd(topology.binding_key(binding.routing_key), binding.queue)

    for queue in topology.queues:
        try:
            # id="0" so entries published before the group existed are still delivered
            await r.xgroup_create(queue_key(queue), topology.group, id="0", mkstream=True)
        except ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise

    logger.info(
        "broker.topology_declared",
        exchange=topology.exchange,
        group=topology.group,
        queues=topology.queues,
    )
