"""
Relay Engine.

Handles every inbound message: performs the subscribe transition when the
message asks for one, then forwards the original payload, byte for byte, to
every other member of the sender's room.

The payload is never re-serialized. Recipients are snapshotted under the
room lock and delivery only enqueues into each recipient's outbox, so one
slow or dead recipient cannot delay the sender or the rest of the room.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from signal_relay.components.core.constants import QUIET_MESSAGE_TYPES, WSConstants
from signal_relay.components.core.context import sanitize_log_data
from signal_relay.components.messages.envelope import MessageEnvelope, parse_envelope
from signal_relay.exceptions import MalformedMessage, RecipientUnavailable

if TYPE_CHECKING:
    from signal_relay.components.connection.registry import RoomRegistry
    from signal_relay.components.connection.session import ConnectionSession, Payload
    from signal_relay.components.metrics.collector import MetricsCollector

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RelayResult:
    """
    Outcome of handling one inbound message.

    Attributes:
        room: Room the message was relayed in, None if the sender had no room.
        delivered: Recipients whose outbox accepted the payload.
        dropped: Recipients skipped because they were closed or backlogged.
        joined: Room entered because of this message, if it was a subscribe.
        structured: Whether the payload parsed as a JSON object.
    """

    room: str | None
    delivered: int = 0
    dropped: int = 0
    joined: str | None = None
    structured: bool = False

    @property
    def orphaned(self) -> bool:
        """True when the sender had no room and the message went nowhere."""
        return self.room is None


class RelayEngine:
    """
    Subscribe handling and fan-out.

    Responsibilities:
    - Move a session into the room named by a subscribe message
    - Forward every message verbatim to the sender's room peers
    - Drop messages from sessions that have not joined a room
    """

    def __init__(
        self,
        registry: "RoomRegistry",
        metrics: "MetricsCollector",
    ) -> None:
        """
        Initialize relay engine with dependencies.

        Args:
            registry: Room membership registry
            metrics: Collects relay metrics
        """
        self._registry = registry
        self._metrics = metrics

    async def handle_message(
        self,
        session: "ConnectionSession",
        payload: "Payload",
    ) -> RelayResult:
        """
        Handle one inbound message from a session.

        A subscribe is applied before the relay step, so the subscribe
        message itself reaches the members of the room just joined.

        Args:
            session: The sending session.
            payload: Raw message as received.

        Returns:
            RelayResult describing what happened.
        """
        self._metrics.increment_messages_received()

        envelope = self._parse(session, payload)
        joined = None
        if envelope is not None:
            room_id = envelope.subscribe_room
            if room_id is not None:
                await self.subscribe(session, room_id)
                joined = room_id
            elif envelope.is_subscribe:
                logger.debug(
                    "Subscribe without usable room id",
                    session=session.session_id,
                    topic=sanitize_log_data(repr(envelope.topics[0])),
                )

        room_id = session.current_room
        if room_id is None:
            self._metrics.increment_orphaned()
            logger.debug(
                "Dropping message from client without room",
                session=session.session_id,
                preview=sanitize_log_data(payload, WSConstants.LOG_PAYLOAD_PREVIEW),
            )
            return RelayResult(room=None, joined=joined, structured=envelope is not None)

        delivered, dropped = await self.fan_out(session, room_id, payload)

        message_type = envelope.discriminator if envelope is not None else None
        if message_type not in QUIET_MESSAGE_TYPES:
            logger.debug(
                "Relayed message",
                session=session.session_id,
                room=room_id,
                type=message_type,
                recipient_count=delivered,
            )

        return RelayResult(
            room=room_id,
            delivered=delivered,
            dropped=dropped,
            joined=joined,
            structured=envelope is not None,
        )

    async def subscribe(self, session: "ConnectionSession", room_id: str) -> None:
        """Move a session into room_id, leaving its previous room."""
        previous = await self._registry.join(session, room_id)
        self._metrics.increment_subscribes()

        logger.info(
            "Client joined room",
            session=session.session_id,
            room=room_id,
            previous_room=previous,
            room_clients=len(self._registry.get_members(room_id)),
            total_rooms=self._registry.room_count,
            total_clients=self._registry.member_count,
        )

    async def fan_out(
        self,
        sender: "ConnectionSession",
        room_id: str,
        payload: "Payload",
    ) -> tuple[int, int]:
        """
        Enqueue a payload for every member of a room except the sender.

        Args:
            sender: Session the payload came from.
            room_id: Room to deliver in.
            payload: Raw payload, forwarded unchanged.

        Returns:
            Tuple of (delivered, dropped).
        """
        recipients = await self._registry.members_except(room_id, sender)

        delivered = 0
        dropped = 0
        for recipient in recipients:
            try:
                recipient.enqueue(payload)
                delivered += 1
            except RecipientUnavailable as e:
                dropped += 1
                logger.debug(
                    "Skipping unavailable recipient",
                    room=room_id,
                    recipient=e.session_id,
                    reason=e.reason,
                )

        self._metrics.record_fanout(delivered, dropped)
        return delivered, dropped

    def _parse(
        self,
        session: "ConnectionSession",
        payload: "Payload",
    ) -> MessageEnvelope | None:
        try:
            return parse_envelope(payload)
        except MalformedMessage as e:
            self._metrics.increment_malformed()
            logger.debug(
                "Relaying unstructured message",
                session=session.session_id,
                error=e.error,
            )
            return None
