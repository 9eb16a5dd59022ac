"""Fan-out hub — broadcasts each consumed event to every live subscriber.

Learn: The registry is the only shared mutable state in the pipeline.
It's touched by the consumer (broadcast), by every SSE connection
(register / unregister), and potentially by other threads, so all
access goes through a threading.Lock. The lock is never held across an
await, which keeps it safe inside the event loop.

Broadcast works on a snapshot of the registry:
1. Copy the current members under the lock
2. Send to all of them concurrently, each send bounded by a timeout
3. Any subscriber whose send fails is closed (and so unregistered)

A slow or dead client therefore costs at most one send timeout and
never blocks delivery to anyone else.

Subscriber lifecycle:

  connecting → active → closing | timed_out | errored → closed
"""

import asyncio
import threading
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Optional

import structlog
from pydantic import BaseModel

from userpulse.events.codec import encode_event
from userpulse.events.errors import DeliveryError, DeliveryErrorKind

logger = structlog.get_logger()

# Marks the end of a subscriber's queue once it has been closed
_CLOSED = object()


class SubscriberState(str, Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSING = "closing"
    TIMED_OUT = "timed_out"
    ERRORED = "errored"
    CLOSED = "closed"


# States a subscriber may be closed with
_CLOSE_STATES = (SubscriberState.CLOSING, SubscriberState.TIMED_OUT, SubscriberState.ERRORED)


class SubscriberClosedError(Exception):
    pass


@dataclass(frozen=True)
class BroadcastResult:
    """Outcome of one broadcast."""
    attempted: int = 0
    delivered: int = 0
    dropped: int = 0


class Subscriber:
    """One open push channel to one client.

    Payloads are buffered in a bounded queue; the SSE response drains it
    via messages(). The hub is the only thing that adds to the queue.
    """

    def __init__(self, hub: "FanoutHub", queue_size: int = 100):
        self.id = uuid.uuid4().hex
        self.state = SubscriberState.CONNECTING
        self._hub = hub
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._close_lock = threading.Lock()

    def __repr__(self) -> str:
        return f"<Subscriber {self.id[:8]} {self.state.value}>"

    @property
    def is_active(self) -> bool:
        return self.state is SubscriberState.ACTIVE

    @property
    def is_closed(self) -> bool:
        return self.state is SubscriberState.CLOSED

    def activate(self) -> None:
        """Mark the stream as established. Only valid from `connecting`."""
        if self.state is SubscriberState.CONNECTING:
            self.state = SubscriberState.ACTIVE
        elif self.state is not SubscriberState.ACTIVE:
            raise SubscriberClosedError(f"subscriber {self.id} is {self.state.value}")

    async def send(self, payload: str, timeout: float) -> None:
        """Queue a payload for this client, waiting at most `timeout` seconds."""
        if not self.is_active:
            raise DeliveryError(
                DeliveryErrorKind.SUBSCRIBER_UNREACHABLE,
                f"subscriber {self.id} is {self.state.value}",
            )
        try:
            await asyncio.wait_for(self._queue.put(payload), timeout=timeout)
        except asyncio.TimeoutError:
            raise DeliveryError(
                DeliveryErrorKind.TIMEOUT,
                f"subscriber {self.id} did not accept a message within {timeout}s",
            ) from None
        # Closed while waiting for room in the queue
        if not self.is_active:
            raise DeliveryError(
                DeliveryErrorKind.SUBSCRIBER_UNREACHABLE,
                f"subscriber {self.id} closed during send",
            )

    def close(self, state: SubscriberState = SubscriberState.CLOSING) -> bool:
        """Close and unregister. Returns False if it was already closing/closed."""
        if state not in _CLOSE_STATES:
            raise ValueError(f"cannot close a subscriber with state {state.value}")
        with self._close_lock:
            if self.state in _CLOSE_STATES or self.state is SubscriberState.CLOSED:
                return False
            self.state = state

        self._hub._remove(self)
        logger.info("hub.subscriber_closed", subscriber_id=self.id, reason=state.value)
        self.state = SubscriberState.CLOSED

        # Pending payloads are dropped; wake up whoever is reading messages()
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)
        return True

    async def messages(self, keepalive: Optional[float] = None) -> AsyncIterator[Optional[str]]:
        """Yield queued payloads until the subscriber is closed.

        With `keepalive`, yields None after that many idle seconds so the
        caller can write a heartbeat.
        """
        while not self.is_closed:
            try:
                if keepalive is None:
                    item = await self._queue.get()
                else:
                    item = await asyncio.wait_for(self._queue.get(), timeout=keepalive)
            except asyncio.TimeoutError:
                yield None
                continue
            if item is _CLOSED:
                return
            yield item


class FanoutHub:
    """Registry of live subscribers plus the broadcast operation."""

    def __init__(self, send_timeout: float = 2.0, queue_size: int = 100):
        self.send_timeout = send_timeout
        self.queue_size = queue_size
        self._subscribers: dict[str, Subscriber] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def __contains__(self, subscriber: Subscriber) -> bool:
        with self._lock:
            return subscriber.id in self._subscribers

    def register(self) -> Subscriber:
        """Create a subscriber and add it to the registry."""
        subscriber = Subscriber(self, queue_size=self.queue_size)
        with self._lock:
            self._subscribers[subscriber.id] = subscriber
        logger.info("hub.subscriber_registered", subscriber_id=subscriber.id)
        return subscriber

    def unregister(self, subscriber: Subscriber) -> None:
        """Close and remove a subscriber, ending its stream.

        Already-closed or already-removed subscribers are ignored.
        """
        subscriber.close(SubscriberState.CLOSING)

    def _remove(self, subscriber: Subscriber) -> None:
        with self._lock:
            removed = self._subscribers.pop(subscriber.id, None)
        if removed is not None:
            logger.info("hub.subscriber_unregistered", subscriber_id=subscriber.id)

    def snapshot(self) -> list[Subscriber]:
        with self._lock:
            return list(self._subscribers.values())

    async def broadcast(self, event: BaseModel) -> BroadcastResult:
        """Deliver an event to every active subscriber in the registry."""
        subscribers = [s for s in self.snapshot() if s.is_active]
        if not subscribers:
            return BroadcastResult()

        payload = encode_event(event)
        outcomes = await asyncio.gather(
            *(self._deliver(s, payload) for s in subscribers)
        )
        delivered = sum(outcomes)
        return BroadcastResult(
            attempted=len(subscribers),
            delivered=delivered,
            dropped=len(subscribers) - delivered,
        )

    async def _deliver(self, subscriber: Subscriber, payload: str) -> bool:
        try:
            await subscriber.send(payload, timeout=self.send_timeout)
            return True
        except DeliveryError as e:
            logger.warning(
                "hub.delivery_failed",
                subscriber_id=subscriber.id,
                reason=e.kind.value,
            )
            if e.kind is DeliveryErrorKind.TIMEOUT:
                subscriber.close(SubscriberState.TIMED_OUT)
            else:
                subscriber.close(SubscriberState.ERRORED)
            return False

    def close_all(self) -> None:
        """Close every subscriber (used at shutdown)."""
        for subscriber in self.snapshot():
            subscriber.close(SubscriberState.CLOSING)


# Process-wide hub shared by the consumer and the SSE endpoint
hub: Optional[FanoutHub] = None


def get_hub() -> FanoutHub:
    """Get the process-wide hub, creating it from settings on first use."""
    global hub
    if hub is None:
        from userpulse.config import settings

        hub = FanoutHub(
            send_timeout=settings.send_timeout_seconds,
            queue_size=settings.subscriber_queue_size,
        )
    return hub
