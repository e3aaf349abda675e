"""
Relay connection context for audit logging.

Encapsulates handshake metadata so audit calls do not repeat the same
parameter clump at every lifecycle step.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, TYPE_CHECKING

if TYPE_CHECKING:
    from fastapi import WebSocket


# Control characters and Unicode direction overrides stripped from log data
_CONTROL_CHAR_PATTERN = re.compile(
    r'[\x00-\x1f\x7f-\x9f'  # ASCII control characters
    r'\u200b-\u200f'  # Zero-width and direction marks
    r'\u202a-\u202e'  # Bidirectional text formatting (RTL override, etc.)
    r'\u2066-\u2069'  # Isolate formatting characters
    r'\ufeff]'  # BOM / Zero-width no-break space
)


def sanitize_log_data(data: str | bytes, max_length: int = 100) -> str:
    """
    Sanitize user-provided data before logging.

    Truncates first so escaping cannot change the output length
    unpredictably, then removes control characters and escapes
    JSON-dangerous characters.

    Args:
        data: Raw user data. Binary payloads are summarized by size.
        max_length: Maximum length to include in logs.

    Returns:
        Sanitized, truncated string safe for structured logging.
    """
    if isinstance(data, (bytes, bytearray)):
        return f"<{len(data)} bytes>"

    truncated = data[:max_length] if len(data) > max_length else data
    was_truncated = len(data) > max_length

    sanitized = _CONTROL_CHAR_PATTERN.sub('', truncated)

    # Replace backslashes first to avoid double-escaping
    sanitized = sanitized.replace('\\', '\\\\')
    sanitized = sanitized.replace('"', '\\"')

    if was_truncated:
        return sanitized + "..."
    return sanitized


@dataclass
class RelayContext:
    """
    Handshake metadata for one relay connection.

    Usage:
        ctx = RelayContext.from_websocket(websocket)
        ctx.audit("CONNECT")
        # ... later
        ctx.audit("DISCONNECT", reason="client_disconnect")
    """

    endpoint: str
    origin: str | None = None
    client: str | None = None
    user_agent: str | None = None
    session_id: str | None = None

    @classmethod
    def from_websocket(cls, websocket: "WebSocket") -> "RelayContext":
        """
        Create context from a WebSocket connection.

        Args:
            websocket: The WebSocket connection (not yet accepted).

        Returns:
            RelayContext with basic connection info.
        """
        headers = websocket.headers
        client = headers.get("x-forwarded-for")
        if not client and websocket.client is not None:
            client = websocket.client.host
        user_agent = headers.get("user-agent")

        return cls(
            endpoint=websocket.url.path,
            origin=headers.get("origin"),
            client=client or "unknown",
            user_agent=user_agent[:50] if user_agent else None,
        )

    def to_audit_dict(self, event_type: str, **extra: Any) -> dict[str, Any]:
        """
        Convert to dictionary for audit logging.

        Only includes non-None fields to reduce log noise.
        """
        result: dict[str, Any] = {
            "event_type": event_type,
            "endpoint": self.endpoint,
        }

        if self.origin:
            result["origin"] = self.origin
        if self.client:
            result["client"] = self.client
        if self.user_agent:
            result["user_agent"] = self.user_agent
        if self.session_id:
            result["session_id"] = self.session_id

        result.update(extra)

        return result

    def audit(
        self,
        event_type: str,
        logger_func: Callable[..., None] | None = None,
        **extra: Any,
    ) -> None:
        """
        Log an audit event.

        Args:
            event_type: The audit event type.
            logger_func: Optional custom logger function (default: audit_ws_connection).
            **extra: Additional fields to log.
        """
        if logger_func is None:
            from signal_relay.config.logging import audit_ws_connection
            logger_func = audit_ws_connection

        logger_func(**self.to_audit_dict(event_type, **extra))

    @property
    def identifier(self) -> str:
        """Human-readable identifier for this connection."""
        return self.session_id or self.client or "unknown"
