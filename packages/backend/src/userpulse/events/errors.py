"""Error taxonomy for the notification pipeline.

Learn: Each stage of the pipeline has exactly one exception type, and
each carries a `kind` so callers can branch without string matching:

- PublishError  → surfaces to the code that asked for the publish
- ConsumeError  → stops at the consumer (logged, message dropped)
- DeliveryError → stops at the hub (that one subscriber is removed)
"""

from enum import Enum


class PublishErrorKind(str, Enum):
    BROKER_UNAVAILABLE = "broker-unavailable"
    SERIALIZATION_ERROR = "serialization-error"


class ConsumeErrorKind(str, Enum):
    DESERIALIZATION_FAILED = "deserialization-failed"


class DeliveryErrorKind(str, Enum):
    SUBSCRIBER_UNREACHABLE = "subscriber-unreachable"
    TIMEOUT = "timeout"


class PublishError(Exception):
    """The event could not be handed to the broker."""

    def __init__(self, kind: PublishErrorKind, message: str):
        super().__init__(f"{kind.value}: {message}")
        self.kind = kind


class ConsumeError(Exception):
    """A broker message could not be turned back into an event."""

    def __init__(self, kind: ConsumeErrorKind, message: str):
        super().__init__(f"{kind.value}: {message}")
        self.kind = kind


class DeliveryError(Exception):
    """A payload could not be pushed to one subscriber."""

    def __init__(self, kind: DeliveryErrorKind, message: str):
        super().__init__(f"{kind.value}: {message}")
        self.kind = kind
