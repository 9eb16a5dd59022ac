"""Domain events — what gets published when a user is (or isn't) created.

Learn: Events flow through the pipeline as immutable pydantic models:
1. Services build an event after the database confirms or denies a write
2. The publisher encodes it to JSON and routes it by its routing key
3. The consumer decodes it again and hands it to the fan-out hub
"""

from userpulse.events.codec import decode_event, encode_event
from userpulse.events.errors import (
    ConsumeError,
    ConsumeErrorKind,
    DeliveryError,
    DeliveryErrorKind,
    PublishError,
    PublishErrorKind,
)
from userpulse.events.types import (
    USER_CREATED,
    USER_CREATION_FAILED,
    Event,
    UserCreated,
    UserCreationFailed,
    routing_key_for,
)

__all__ = [
    "USER_CREATED",
    "USER_CREATION_FAILED",
    "ConsumeError",
    "ConsumeErrorKind",
    "DeliveryError",
    "DeliveryErrorKind",
    "Event",
    "PublishError",
    "PublishErrorKind",
    "UserCreated",
    "UserCreationFailed",
    "decode_event",
    "encode_event",
    "routing_key_for",
]
