"""Event model, routing, and codec tests."""

import json

import pytest
from pydantic import BaseModel, ValidationError

from userpulse.events import (
    USER_CREATED,
    USER_CREATION_FAILED,
    ConsumeError,
    ConsumeErrorKind,
    PublishError,
    PublishErrorKind,
    UserCreated,
    UserCreationFailed,
    decode_event,
    encode_event,
    routing_key_for,
)


def test_routing_keys_per_variant():
    assert routing_key_for(UserCreated(name="Al", email="al@example.com")) == USER_CREATED
    assert routing_key_for(
        UserCreationFailed(attempted_email="al@example.com", reason="dup")
    ) == USER_CREATION_FAILED
    assert USER_CREATED == "user.created"
    assert USER_CREATION_FAILED == "user.created.failed"


def test_routing_key_for_unknown_event_is_serialization_error():
    class Other(BaseModel):
        type: str = "other"

    with pytest.raises(PublishError) as exc:
        routing_key_for(Other())
    assert exc.value.kind is PublishErrorKind.SERIALIZATION_ERROR


def test_events_are_immutable():
    event = UserCreated(name="Al", email="al@example.com")
    with pytest.raises(ValidationError):
        event.name = "Bob"


def test_user_created_survives_round_trip():
    event = UserCreated(name="Al", email="al@x.com")
    decoded = decode_event(encode_event(event))
    assert isinstance(decoded, UserCreated)
    assert decoded == event


def test_creation_failed_uses_original_wire_names():
    event = UserCreationFailed(attempted_email="al@x.com", reason="Email already registered")
    wire = json.loads(encode_event(event))
    assert wire == {
        "type": "user.created.failed",
        "attemptedEmail": "al@x.com",
        "reason": "Email already registered",
    }
    decoded = decode_event(json.dumps(wire).encode())
    assert isinstance(decoded, UserCreationFailed)
    assert decoded.attempted_email == "al@x.com"


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "",
        "not json",
        '{"type": "user.deleted", "name": "Al"}',
        '{"type": "user.created", "name": "Al"}',
        '{"name": "Al", "email": "al@x.com"}',
        "[1, 2, 3]",
        b"\xff\xfe garbage",
    ],
)
def test_malformed_payloads_raise_consume_error(raw):
    with pytest.raises(ConsumeError) as exc:
        decode_event(raw)
    assert exc.value.kind is ConsumeErrorKind.DESERIALIZATION_FAILED
