"""
Relay exceptions.

Each exception is raised where the failure is detected and handled at the
seam that owns its policy:

    AuthenticationFailure -> endpoint rejects the handshake (401)
    MalformedMessage      -> RelayEngine falls back to opaque relay
    RecipientUnavailable  -> RelayEngine skips that recipient
    SessionClosedError    -> LifecycleManager / RoomRegistry ignore the late event

None of them ever crosses from one connection's flow into another's.
"""

from __future__ import annotations

from typing import Any


class RelayError(Exception):
    """Base class for relay errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


class AuthenticationFailure(RelayError):
    """Credential presented at connection time did not match the configured secret."""

    def __init__(self, reason: str = "invalid_password", **context: Any) -> None:
        super().__init__("Unauthorized: Invalid password", reason=reason, **context)
        self.reason = reason


class MalformedMessage(RelayError):
    """Payload is not a structured (JSON object) message."""

    def __init__(self, error: str, **context: Any) -> None:
        super().__init__(f"Malformed message: {error}", **context)
        self.error = error


class RecipientUnavailable(RelayError):
    """A fan-out target cannot accept a message right now (closed or backlogged)."""

    def __init__(self, session_id: str, reason: str, **context: Any) -> None:
        super().__init__(
            f"Recipient {session_id} unavailable: {reason}",
            session_id=session_id,
            **context,
        )
        self.session_id = session_id
        self.reason = reason


class SessionClosedError(RelayError):
    """Operation attempted on a session that has already been destroyed."""

    def __init__(self, session_id: str, **context: Any) -> None:
        super().__init__(f"Session {session_id} is closed", session_id=session_id, **context)
        self.session_id = session_id
