"""
Connection Session.

Per-connection relay state: the room the connection currently belongs to,
when it connected, and its outbound path.

Every session owns a bounded outbox drained by a dedicated writer task.
Fan-out only ever enqueues, so a slow recipient never stalls the sender or
the other recipients, and messages from one sender reach each recipient in
the order they were enqueued.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Union

from starlette.websockets import WebSocketState

from signal_relay.exceptions import RecipientUnavailable

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = logging.getLogger(__name__)

Payload = Union[str, bytes]


def is_ws_connected(ws: "WebSocket") -> bool:
    """
    Check if WebSocket is in connected state before sending.

    Starlette WebSockets have limited state visibility:
    - CONNECTING: Initial state (not observable here)
    - CONNECTED: Active connection
    - DISCONNECTED: Closed connection

    Transitional states are not exposed, so connections may appear
    connected briefly after disconnect initiated.
    """
    return (
        ws.client_state == WebSocketState.CONNECTED
        and ws.application_state == WebSocketState.CONNECTED
    )


def _new_session_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass(eq=False)
class ConnectionSession:
    """
    Server-side state for one live connection.

    Attributes:
        websocket: Transport handle.
        outbox_size: Pending messages kept before new ones are dropped.
        session_id: Short random id used in logs.
        connected_at: UTC time the session was created.
        current_room: Room the connection belongs to, at most one.
        closed: Set once by LifecycleManager; no operation is valid afterwards.
    """

    websocket: "WebSocket"
    outbox_size: int = 256
    session_id: str = field(default_factory=_new_session_id)
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    current_room: str | None = None
    closed: bool = False

    _outbox: asyncio.Queue = field(init=False, repr=False)
    _writer: asyncio.Task | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self._outbox = asyncio.Queue(maxsize=self.outbox_size)

    @property
    def is_writable(self) -> bool:
        """Whether the transport is open and the session is live."""
        return not self.closed and is_ws_connected(self.websocket)

    @property
    def pending(self) -> int:
        """Messages waiting in the outbox."""
        return self._outbox.qsize()

    def enqueue(self, payload: Payload) -> None:
        """
        Queue a payload for delivery without blocking.

        Raises:
            RecipientUnavailable: If the session is closed, its transport is
                not writable, or its outbox is full.
        """
        if not self.is_writable:
            raise RecipientUnavailable(self.session_id, "not_writable")
        try:
            self._outbox.put_nowait(payload)
        except asyncio.QueueFull:
            raise RecipientUnavailable(
                self.session_id, "outbox_full", pending=self._outbox.qsize()
            ) from None

    def start_writer(self, send_timeout: float) -> None:
        """Start the task that drains the outbox into the transport."""
        if self._writer is None:
            self._writer = asyncio.create_task(
                self._writer_loop(send_timeout),
                name=f"relay_writer_{self.session_id}",
            )

    async def stop_writer(self) -> None:
        """Cancel the writer task and wait for it to finish."""
        writer, self._writer = self._writer, None
        if writer is None or writer.done():
            return
        writer.cancel()
        try:
            await writer
        except asyncio.CancelledError:
            pass

    async def flush(self, timeout: float) -> bool:
        """
        Wait until every queued payload has been handed to the transport.

        Returns:
            True if the outbox drained within the timeout.
        """
        if self._writer is None:
            return self._outbox.empty()
        try:
            await asyncio.wait_for(self._outbox.join(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def _writer_loop(self, send_timeout: float) -> None:
        while True:
            payload = await self._outbox.get()
            try:
                if not is_ws_connected(self.websocket):
                    logger.debug("Dropping message for closed transport", session=self.session_id)
                    continue
                await asyncio.wait_for(self._send(payload), timeout=send_timeout)
            except asyncio.TimeoutError:
                logger.debug(
                    "Send timed out",
                    session=self.session_id,
                    timeout=send_timeout,
                )
            except Exception as e:
                logger.debug("Send failed", session=self.session_id, error=str(e))
            finally:
                self._outbox.task_done()

    async def _send(self, payload: Payload) -> None:
        if isinstance(payload, bytes):
            await self.websocket.send_bytes(payload)
        else:
            await self.websocket.send_text(payload)
