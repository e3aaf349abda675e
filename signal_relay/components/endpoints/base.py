"""
Relay WebSocket Endpoint.

Drives one connection through its whole life:

1. Authenticate the handshake (reject with 401, never accept)
2. Accept and allocate the session
3. Message loop: every text or binary frame goes to the relay engine
4. Destroy the session, whatever ended the loop
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import WebSocket, WebSocketDisconnect
from fastapi.responses import PlainTextResponse

from signal_relay.components.core.constants import DENIAL_EXTENSION, UNAUTHORIZED_BODY
from signal_relay.components.core.context import RelayContext
from signal_relay.components.endpoints.mixins import (
    ConnectionLifecycleMixin,
    MessageValidationMixin,
)

if TYPE_CHECKING:
    from signal_relay.components.auth.strategies import AuthResult
    from signal_relay.components.connection.session import ConnectionSession, Payload
    from signal_relay.connection_manager import RelayManager

logger = logging.getLogger(__name__)


class RelayEndpoint(
    MessageValidationMixin,
    ConnectionLifecycleMixin,
):
    """
    Handler for a single relay connection.

    Usage:
        endpoint = RelayEndpoint(websocket, manager)
        await endpoint.run()
    """

    def __init__(self, websocket: WebSocket, manager: "RelayManager"):
        """
        Initialize the endpoint handler.

        Args:
            websocket: The WebSocket connection, not yet accepted.
            manager: RelayManager instance.
        """
        self.websocket = websocket
        self.manager = manager
        self.context = RelayContext.from_websocket(websocket)
        self.session: ConnectionSession | None = None

    async def run(self) -> None:
        """Main entry point - run the connection to completion."""
        result = await self.manager.authenticator.authenticate(self.websocket)
        if not result.success:
            await self.reject(result)
            return

        try:
            self.session = await self.manager.lifecycle.open(
                self.websocket, subprotocol=result.subprotocol
            )
        except ConnectionError as e:
            self.log_connect_rejected(str(e))
            return

        self.context.session_id = self.session.session_id
        self.log_connect()

        reason = "client_disconnect"
        error: Exception | None = None
        try:
            await self._message_loop()
            reason = "message_too_big"
            self.log_disconnect(reason)
        except WebSocketDisconnect as e:
            self.log_disconnect(reason, code=e.code)
        except Exception as e:
            reason = "transport_error"
            error = e
            self.manager.lifecycle.record_error(self.session, e)
            self.log_disconnect(reason, error=str(e) or type(e).__name__)
        finally:
            await self.manager.lifecycle.close(self.session, reason=reason, error=error)

    async def reject(self, result: "AuthResult") -> None:
        """
        Refuse the handshake.

        Answers with HTTP 401 when the server supports denial responses;
        otherwise closes before accepting, which the client also sees as a
        failed handshake.
        """
        self.manager.metrics.increment_connections_rejected_auth()
        self.context.audit("AUTH_FAILED", reason=result.audit_reason)

        if DENIAL_EXTENSION in self.websocket.scope.get("extensions", {}):
            await self.websocket.send_denial_response(
                PlainTextResponse(UNAUTHORIZED_BODY, status_code=401)
            )
        else:
            await self.websocket.close(code=result.close_code, reason=UNAUTHORIZED_BODY)

    async def _message_loop(self) -> None:
        """
        Receive frames until the client goes away.

        Raises:
            WebSocketDisconnect: When the client closes the connection.
        """
        while True:
            data = await self._receive()
            if data is None:
                continue

            if not await self.validate_message_size(data):
                return

            await self.manager.relay.handle_message(self.session, data)

    async def _receive(self) -> "Payload | None":
        message = await self.websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(
                code=message.get("code", 1000),
                reason=message.get("reason"),
            )
        if message.get("text") is not None:
            return message["text"]
        if message.get("bytes") is not None:
            return message["bytes"]
        return None
