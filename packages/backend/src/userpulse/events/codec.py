"""JSON encoding for events in transit."""

from pydantic import BaseModel, TypeAdapter, ValidationError

from userpulse.events.errors import (
    ConsumeError,
    ConsumeErrorKind,
    PublishError,
    PublishErrorKind,
)
from userpulse.events.types import Event

_event_adapter: TypeAdapter[Event] = TypeAdapter(Event)


def encode_event(event: BaseModel) -> str:
    """Serialize an event to its wire form (JSON, original field names)."""
    try:
        return event.model_dump_json(by_alias=True)
    except (AttributeError, TypeError, ValueError) as e:
        raise PublishError(PublishErrorKind.SERIALIZATION_ERROR, str(e)) from e


def decode_event(raw: str | bytes | None) -> Event:
    """Parse a wire payload back into an event.

    Raises ConsumeError for anything that isn't a well-formed, known event:
    invalid JSON, an unknown `type`, or missing fields all look the same
    to the consumer.
    """
    if raw is None:
        raise ConsumeError(ConsumeErrorKind.DESERIALIZATION_FAILED, "empty message body")
    try:
        return _event_adapter.validate_json(raw)
    except ValidationError as e:
        raise ConsumeError(
            ConsumeErrorKind.DESERIALIZATION_FAILED,
            f"{e.error_count()} validation error(s): {e.errors()[0]['msg']}",
        ) from e
    except UnicodeDecodeError as e:
        raise ConsumeError(
            ConsumeErrorKind.DESERIALIZATION_FAILED, f"body is not valid UTF-8: {e.reason}"
        ) from e
