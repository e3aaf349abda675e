"""
Connection Lifecycle Management.

Creates a ConnectionSession when an authenticated connection opens and
destroys it exactly once when the connection closes, releasing its room
membership.

Sessions live in an explicit websocket -> session table owned by this class:
inserted on open, removed on close. Nothing relies on garbage collection to
decide when a session is gone.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from signal_relay.components.connection.session import ConnectionSession
from signal_relay.components.core.constants import WSCloseCode, WSConstants

if TYPE_CHECKING:
    from fastapi import WebSocket
    from signal_relay.components.connection.registry import RoomRegistry
    from signal_relay.components.metrics.collector import MetricsCollector

logger = logging.getLogger(__name__)


class LifecycleManager:
    """
    Manages the lifecycle of relay sessions.

    Responsibilities:
    - Accept authenticated connections and allocate their session
    - Destroy sessions exactly once, whatever mix of close/error signals arrives
    - Drain and close every session on shutdown
    """

    def __init__(
        self,
        registry: "RoomRegistry",
        metrics: "MetricsCollector",
        outbox_size: int = 256,
        send_timeout: float = 5.0,
        accept_timeout: float = WSConstants.WS_ACCEPT_TIMEOUT,
    ) -> None:
        """
        Initialize lifecycle manager with dependencies.

        Args:
            registry: Room membership registry
            metrics: Collects connection metrics
            outbox_size: Per-session outbound queue size
            send_timeout: Timeout for a single outbound send
            accept_timeout: Timeout for completing the WebSocket handshake
        """
        self._registry = registry
        self._metrics = metrics
        self._outbox_size = outbox_size
        self._send_timeout = send_timeout
        self._accept_timeout = accept_timeout
        self._sessions: dict["WebSocket", ConnectionSession] = {}
        self._shutdown = False

    @property
    def total_connections(self) -> int:
        """Current number of live sessions, with or without a room."""
        return len(self._sessions)

    def get_session(self, websocket: "WebSocket") -> ConnectionSession | None:
        """Get the live session for a websocket."""
        return self._sessions.get(websocket)

    def sessions(self) -> list[ConnectionSession]:
        """Live sessions (returns copy for safety)."""
        return list(self._sessions.values())

    async def open(
        self,
        websocket: "WebSocket",
        subprotocol: str | None = None,
    ) -> ConnectionSession:
        """
        Accept an authenticated WebSocket and allocate its session.

        Args:
            websocket: The WebSocket to accept.
            subprotocol: Negotiated subprotocol to echo back.

        Returns:
            The new session, with no room.

        Raises:
            ConnectionError: If the server is shutting down or the handshake fails.
        """
        if self._shutdown:
            raise ConnectionError("Server is shutting down")

        try:
            await asyncio.wait_for(
                websocket.accept(subprotocol=subprotocol),
                timeout=self._accept_timeout,
            )
        except asyncio.TimeoutError:
            raise ConnectionError("WebSocket accept timed out")
        except Exception as e:
            raise ConnectionError(f"WebSocket accept failed: {e}")

        session = ConnectionSession(websocket=websocket, outbox_size=self._outbox_size)
        self._sessions[websocket] = session
        session.start_writer(self._send_timeout)
        self._metrics.increment_connections_accepted()

        logger.info(
            "Client connected",
            session=session.session_id,
            total_connections=len(self._sessions),
        )
        return session

    async def close(
        self,
        session: ConnectionSession,
        reason: str = "client_disconnect",
        error: BaseException | None = None,
    ) -> bool:
        """
        Destroy a session and release its room membership.

        Safe to call any number of times for the same session: only the
        first call has an effect.

        Args:
            session: The session to destroy.
            reason: Why the connection ended (for logs).
            error: Transport error that ended the connection, if any.

        Returns:
            True if this call destroyed the session.
        """
        if session.closed:
            return False
        # Marked before the first await so a concurrent close is a no-op and
        # fan-out stops targeting this session immediately.
        session.closed = True
        self._sessions.pop(session.websocket, None)

        try:
            room = await self._registry.leave(session)
        finally:
            await session.stop_writer()
            self._metrics.increment_connections_closed()

        if error is not None:
            logger.warning(
                "Client disconnected unexpectedly",
                session=session.session_id,
                room=room,
                reason=reason,
                error=str(error),
            )

        if room is not None:
            logger.info(
                "Client left room",
                session=session.session_id,
                room=room,
                remaining_in_room=len(self._registry.get_members(room)),
                total_rooms=self._registry.room_count,
                total_clients=self._registry.member_count,
            )
        else:
            logger.info(
                "Client disconnected before joining room",
                session=session.session_id,
                reason=reason,
            )
        return True

    def record_error(self, session: ConnectionSession, error: BaseException) -> None:
        """
        Record a transport error that does not end the connection.

        Logged only; membership is untouched.
        """
        self._metrics.increment_connection_errors()
        logger.error(
            "WebSocket error",
            session=session.session_id,
            room=session.current_room,
            error=str(error) or type(error).__name__,
        )

    async def shutdown(self, drain_timeout: float) -> int:
        """
        Flush pending outbound messages and close every session.

        Args:
            drain_timeout: Seconds allowed for outboxes to drain.

        Returns:
            Number of sessions closed.
        """
        self._shutdown = True
        sessions = self.sessions()
        if not sessions:
            return 0

        drained = await asyncio.gather(
            *(session.flush(drain_timeout) for session in sessions),
            return_exceptions=True,
        )
        undrained = sum(1 for result in drained if result is not True)
        if undrained:
            logger.warning(
                "Outbox drain timeout",
                sessions=undrained,
                timeout=drain_timeout,
            )

        for session in sessions:
            try:
                await asyncio.wait_for(
                    session.websocket.close(code=WSCloseCode.GOING_AWAY, reason="Server shutting down"),
                    timeout=WSConstants.CLOSE_TIMEOUT,
                )
            except Exception as e:
                logger.debug("Close during shutdown failed", session=session.session_id, error=str(e))
            await self.close(session, reason="server_shutdown")

        logger.info("All sessions closed", count=len(sessions))
        return len(sessions)
