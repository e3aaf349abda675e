"""
Relay Endpoint Mixins.

Each mixin handles a single concern for the relay endpoint.

Mixins:
    MessageValidationMixin: Inbound message size limit
    ConnectionLifecycleMixin: Connect/disconnect/reject logging and audit

Usage:
    class MyEndpoint(MessageValidationMixin, ConnectionLifecycleMixin, RelayEndpoint):
        ...
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from fastapi import WebSocket

from signal_relay.components.core.constants import WSCloseCode

if TYPE_CHECKING:
    from signal_relay.components.connection.session import ConnectionSession, Payload
    from signal_relay.components.core.context import RelayContext
    from signal_relay.connection_manager import RelayManager

logger = logging.getLogger(__name__)


# =============================================================================
# Protocols for mixin dependencies
# =============================================================================


class HasWebSocket(Protocol):
    """Protocol for classes with websocket attribute."""

    websocket: WebSocket
    context: "RelayContext"
    session: "ConnectionSession | None"


class HasManager(Protocol):
    """Protocol for classes with manager attribute."""

    manager: "RelayManager"


# =============================================================================
# MessageValidationMixin
# =============================================================================


class MessageValidationMixin:
    """
    Mixin for inbound message validation.

    Requires:
        - self.websocket: WebSocket
        - self.manager: RelayManager
        - self.context: RelayContext
    """

    async def validate_message_size(self: "HasWebSocket & HasManager", data: "Payload") -> bool:
        """
        Validate message size against configured limit.

        Text is measured in UTF-8 bytes so text and binary frames share
        one limit.

        Args:
            data: Message data to validate.

        Returns:
            True if valid, False if too large (connection closed).
        """
        max_size = self.manager.settings.relay_max_message_size
        size = len(data) if isinstance(data, bytes) else len(data.encode("utf-8"))

        if size > max_size:
            logger.warning(
                "Message size exceeded limit",
                identifier=self.context.identifier,
                size=size,
                max_size=max_size,
            )
            self.manager.metrics.increment_oversized()
            await self.websocket.close(
                code=WSCloseCode.MESSAGE_TOO_BIG,
                reason="Message too large",
            )
            return False
        return True


# =============================================================================
# ConnectionLifecycleMixin
# =============================================================================


class ConnectionLifecycleMixin:
    """
    Mixin for connection lifecycle logging.

    Requires:
        - self.context: RelayContext
    """

    def log_connect(self: HasWebSocket) -> None:
        """Log connection event."""
        self.context.audit("CONNECT")

    def log_disconnect(self: HasWebSocket, reason: str = "client_disconnect", **extra) -> None:
        """Log disconnection event."""
        self.context.audit("DISCONNECT", reason=reason, **extra)

    def log_connect_rejected(self: HasWebSocket, reason: str) -> None:
        """Log connection rejection event."""
        logger.warning(
            "Connection rejected",
            endpoint=self.context.endpoint,
            identifier=self.context.identifier,
            reason=reason,
        )
        self.context.audit("CONNECT_REJECTED", reason=reason)


# =============================================================================
# Exports
# =============================================================================


__all__ = [
    "MessageValidationMixin",
    "ConnectionLifecycleMixin",
]
