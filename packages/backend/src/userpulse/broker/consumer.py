"""Event consumer — reads bound queues and feeds the fan-out hub.

Learn: One asyncio task per queue. Inside a task, messages are handled
strictly one after another, in stream order, so ordering within a queue
is preserved. Different queues run concurrently; there's no ordering
between them.

Per message:
1. Decode the body into an event
2. Broadcast it through the hub
3. XACK — only after broadcast has returned, whatever the outcome

Malformed messages are logged and acknowledged (never re-queued, since
retrying can't fix them). With the `dead_letter` policy the raw body is
copied to `<queue>.dead` first so someone can look at it later.
"""

import asyncio
from typing import Literal, Optional, Protocol

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from userpulse.broker.topology import Topology, dead_letter_key, queue_key
from userpulse.events.codec import decode_event
from userpulse.events.errors import ConsumeError
from userpulse.events.types import Event
from userpulse.realtime.hub import BroadcastResult

logger = structlog.get_logger()

# XREADGROUP ids: "0" replays our own pending entries, ">" asks for new ones
_PENDING = "0"
_NEW = ">"


def _text(value: str | bytes) -> str:
    return value.decode() if isinstance(value, bytes) else value


class Broadcaster(Protocol):
    async def broadcast(self, event: Event) -> BroadcastResult: ...


class EventConsumer:
    """Consumes every queue in the topology and broadcasts each event.

    Usage:
        consumer = EventConsumer(stream_redis, topology, hub, consumer_name="api-1")
        task = asyncio.create_task(consumer.run())
        ...
        consumer.stop()
        task.cancel()
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        topology: Topology,
        hub: Broadcaster,
        *,
        consumer_name: str,
        batch_size: int = 10,
        block_ms: int = 5000,
        retry_delay: float = 1.0,
        malformed_policy: Literal["drop", "dead_letter"] = "drop",
    ):
        self.redis = redis
        self.topology = topology
        self.hub = hub
        self.consumer_name = consumer_name
        self.batch_size = batch_size
        self.block_ms = block_ms
        self.retry_delay = retry_delay
        self.malformed_policy = malformed_policy
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def run(self) -> None:
        """Consume all queues until stopped or cancelled."""
        self._running = True
        logger.info(
            "consumer.started",
            group=self.topology.group,
            consumer=self.consumer_name,
            queues=self.topology.queues,
        )
        await asyncio.gather(*(self.consume_queue(q) for q in self.topology.queues))

    def stop(self) -> None:
        """Signal every queue loop to stop after its current batch."""
        self._running = False
        logger.info("consumer.stopping")

    async def consume_queue(self, queue: str) -> None:
        """Read one queue sequentially.

        Starts by replaying entries this consumer received but never
        acknowledged (a previous run crashed mid-message), then switches
        to new entries.
        """
        stream = queue_key(queue)
        cursor = _PENDING

        while self._running:
            try:
                response = await self.redis.xreadgroup(
                    self.topology.group,
                    self.consumer_name,
                    {stream: cursor},
                    count=self.batch_size,
                    block=None if cursor == _PENDING else self.block_ms,
                )
            except RedisError as e:
                logger.warning("consumer.read_failed", queue=queue, error=str(e))
                await asyncio.sleep(self.retry_delay)
                continue

            entries = response[0][1] if response else []
            if cursor == _PENDING and not entries:
                cursor = _NEW
                continue

            for message_id, fields in entries:
                try:
                    await self.handle_message(queue, message_id, fields)
                except RedisError as e:
                    # Not acked, so it stays pending and gets replayed
                    logger.warning(
                        "consumer.ack_failed",
                        queue=queue,
                        message_id=message_id,
                        error=str(e),
                    )
                    cursor = _PENDING
                    await asyncio.sleep(self.retry_delay)
                    break

    async def handle_message(
        self, queue: str, message_id: str | bytes, fields: Optional[dict]
    ) -> bool:
        """Decode, broadcast, acknowledge. Returns False for malformed messages.

        Entries read with the raw stream client carry bytes ids and fields;
        the body is handed to the codec undecoded.
        """
        log = logger.bind(queue=queue, message_id=_text(message_id))
        fields = {_text(k): v for k, v in (fields or {}).items()}
        body = fields.get("body")

        try:
            event = decode_event(body)
        except ConsumeError as e:
            log.warning("consumer.malformed_message", error=str(e))
            if self.malformed_policy == "dead_letter":
                await self.redis.xadd(
                    dead_letter_key(queue),
                    {"body": body if body is not None else "", "error": str(e)},
                )
            await self._ack(queue, message_id)
            return False

        try:
            result = await self.hub.broadcast(event)
            log.info(
                "consumer.broadcast",
                event_type=event.type,
                attempted=result.attempted,
                delivered=result.delivered,
            )
        except Exception:
            log.exception("consumer.broadcast_failed", event_type=event.type)

        await self._ack(queue, message_id)
        return True

    async def _ack(self, queue: str, message_id: str | bytes) -> None:
        await self.redis.xack(queue_key(queue), self.topology.group, message_id)
