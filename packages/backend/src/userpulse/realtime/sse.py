"""Server-sent events endpoint — live notification stream for browsers.

Learn: Each client opens GET /api/v1/sse/notifications with an
EventSource. The stream generator:
1. Registers a subscriber with the hub (state: connecting)
2. Activates it as soon as the response starts streaming
3. Writes every broadcast payload as a `data:` frame
4. Closes the subscriber when the client goes away, the connection
   reaches its maximum lifetime, or anything goes wrong

Registration happens inside the generator, not in the route handler, so
a client that disconnects before the body starts never leaves an entry
behind in the registry.

This is one-way: nothing flows from the client except connect and
disconnect.
"""

import time
from typing import AsyncIterator, Optional

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from userpulse.config import settings
from userpulse.realtime.hub import FanoutHub, SubscriberState, get_hub

logger = structlog.get_logger()
router = APIRouter()

KEEPALIVE_FRAME = ": keepalive\n\n"


def format_sse(payload: str) -> str:
    """Frame a payload as one server-sent event."""
    lines = payload.splitlines() or [""]
    return "".join(f"data: {line}\n" for line in lines) + "\n"


async def event_stream(
    hub: FanoutHub,
    keepalive: float,
    max_lifetime: Optional[float] = None,
) -> AsyncIterator[str]:
    """Register with the hub and stream SSE frames until the subscriber closes.

    Whatever ends the stream, the subscriber is closed exactly once:
    client disconnect (the generator is cancelled or closed) → closing,
    lifetime exceeded → timed_out, unexpected error → errored.
    """
    subscriber = hub.register()
    state = SubscriberState.CLOSING
    deadline = time.monotonic() + max_lifetime if max_lifetime else None
    try:
        subscriber.activate()
        async for payload in subscriber.messages(keepalive=keepalive):
            if deadline is not None and time.monotonic() >= deadline:
                state = SubscriberState.TIMED_OUT
                break
            yield KEEPALIVE_FRAME if payload is None else format_sse(payload)
    except Exception:
        state = SubscriberState.ERRORED
        logger.exception("sse.stream_failed", subscriber_id=subscriber.id)
        raise
    finally:
        subscriber.close(state)


@router.get("/sse/notifications")
async def stream_notifications(hub: FanoutHub = Depends(get_hub)):
    """Open a live notification stream."""
    return StreamingResponse(
        event_stream(
            hub,
            keepalive=settings.sse_keepalive_seconds,
            max_lifetime=settings.sse_max_connection_seconds or None,
        ),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
