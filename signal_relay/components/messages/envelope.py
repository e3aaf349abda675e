"""
Message envelope parsing.

The relay is payload-agnostic: the only content it inspects is the
subscribe directive

    {"type": "subscribe", "topics": ["room-1", ...]}

(`action` is accepted as an alias of `type`). Everything else, including
payloads that are not JSON objects at all, is forwarded untouched.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from signal_relay.components.core.constants import SUBSCRIBE_ACTION
from signal_relay.exceptions import MalformedMessage


class MessageEnvelope(BaseModel):
    """
    Structured view of a JSON-object message.

    Fields are deliberately untyped: a message whose fields have unexpected
    types is still a structured message, it just is not a subscribe request.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    type: Any = None
    action: Any = None
    topics: Any = None

    @property
    def discriminator(self) -> str | None:
        """The `type` tag, falling back to `action`."""
        for value in (self.type, self.action):
            if isinstance(value, str):
                return value
        return None

    @property
    def is_subscribe(self) -> bool:
        return (
            SUBSCRIBE_ACTION in (self.type, self.action)
            and isinstance(self.topics, list)
            and len(self.topics) > 0
        )

    @property
    def subscribe_room(self) -> str | None:
        """
        Room requested by a subscribe message.

        Only the first topic is honored; a connection belongs to one room at
        a time and further topics are ignored. Returns None when this is not
        a subscribe request or the first topic is not a non-empty string.
        """
        if not self.is_subscribe:
            return None
        room = self.topics[0]
        if isinstance(room, str) and room:
            return room
        return None


def parse_envelope(payload: str | bytes) -> MessageEnvelope:
    """
    Parse a text payload as a structured message.

    Args:
        payload: Raw message as received from the transport.

    Returns:
        The parsed envelope.

    Raises:
        MalformedMessage: If the payload is binary, not JSON, or not a JSON object.
    """
    if isinstance(payload, (bytes, bytearray)):
        raise MalformedMessage("binary payload", size=len(payload))

    try:
        return MessageEnvelope.model_validate_json(payload)
    except ValidationError as e:
        errors = e.errors(include_url=False)
        error = errors[0]["msg"] if errors else str(e)
        raise MalformedMessage(error) from None
