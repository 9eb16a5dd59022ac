"""Event types and their routing keys.

Learn: The `type` field doubles as the discriminator for the tagged
union and as the routing key on the exchange. Centralizing the keys as
constants prevents typos between the publisher and the queue bindings.

The JSON field names match what the original Java services put on the
wire (`attemptedEmail`), so mixed deployments can share an exchange.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from userpulse.events.errors import PublishError, PublishErrorKind

# ─── Routing keys ───────────────────────────────────────

USER_CREATED = "user.created"
USER_CREATION_FAILED = "user.created.failed"


# ─── Events ─────────────────────────────────────────────

class UserCreated(BaseModel):
    type: Literal["user.created"] = USER_CREATED
    name: str
    email: str

    model_config = {"frozen": True}


class UserCreationFailed(BaseModel):
    type: Literal["user.created.failed"] = USER_CREATION_FAILED
    attempted_email: str = Field(..., alias="attemptedEmail")
    reason: str

    model_config = {"frozen": True, "populate_by_name": True}


Event = Annotated[Union[UserCreated, UserCreationFailed], Field(discriminator="type")]

_ROUTING_KEYS: dict[type, str] = {
    UserCreated: USER_CREATED,
    UserCreationFailed: USER_CREATION_FAILED,
}


def routing_key_for(event: BaseModel) -> str:
    """Return the exchange routing key for an event."""
    try:
        return _ROUTING_KEYS[type(event)]
    except KeyError:
        raise PublishError(
            PublishErrorKind.SERIALIZATION_ERROR,
            f"no routing key for event type {type(event).__name__}",
        ) from None
