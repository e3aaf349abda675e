"""
Relay Constants.

Centralized constants with documentation explaining rationale for each value.
"""

from enum import IntEnum
from typing import Final

__all__ = [
    "WSCloseCode",
    "WSConstants",
    "HEALTH_PATHS",
    "HEALTH_UPGRADE_PATH",
    "DENIAL_EXTENSION",
    "SUBSCRIBE_ACTION",
    "QUIET_MESSAGE_TYPES",
    "AUTH_HEADER",
    "UNAUTHORIZED_BODY",
    "UPGRADE_REQUIRED_BODY",
]


class WSCloseCode(IntEnum):
    """
    WebSocket close codes used by the relay.

    Standard codes (1000-1999) from RFC 6455.
    Custom codes (4000-4999) for application-specific errors.
    """

    # Standard codes (RFC 6455)
    NORMAL = 1000  # Normal closure
    GOING_AWAY = 1001  # Server shutting down
    MESSAGE_TOO_BIG = 1009  # Message too large to relay
    SERVER_ERROR = 1011  # Unexpected server error

    # Custom application codes (4000-4999)
    # Only used when the ASGI server cannot send an HTTP 401 denial response
    AUTH_FAILED = 4001


class WSConstants:
    """
    Relay operational constants.

    Values that operators need to tune live in Settings; these are internal
    implementation details.
    """

    # ==========================================================================
    # Timeout Constants
    # ==========================================================================

    # WS_ACCEPT_TIMEOUT: 5 seconds
    # Rationale: WebSocket handshake should complete within TCP timeout.
    # 5 seconds handles slow networks while rejecting stuck connections.
    WS_ACCEPT_TIMEOUT: Final[float] = 5.0

    # CLOSE_TIMEOUT: 1 second
    # Rationale: Closing a session during shutdown must not hang on a peer
    # that stopped reading.
    CLOSE_TIMEOUT: Final[float] = 1.0

    # ==========================================================================
    # Lock Management Constants
    # ==========================================================================

    # MAX_CACHED_LOCKS: 5000
    # Rationale: One lock per live room. Rooms are ephemeral, so cached locks
    # for rooms that disappeared are pruned once this many are held.
    # Each lock is ~200 bytes, so 5000 locks use ~1MB.
    MAX_CACHED_LOCKS: Final[int] = 5000

    # LOCK_CLEANUP_THRESHOLD: 4000 (80% of MAX_CACHED_LOCKS)
    # Rationale: Start cleanup before hitting the limit to avoid blocking.
    LOCK_CLEANUP_THRESHOLD: Final[int] = 4000

    # ==========================================================================
    # Logging Constants
    # ==========================================================================

    # LOG_PAYLOAD_PREVIEW: 100 characters
    # Rationale: Enough to identify a message type in logs without writing
    # user payloads (SDP, ICE candidates) to disk.
    LOG_PAYLOAD_PREVIEW: Final[int] = 100


# Plain HTTP paths answered by the health projection
HEALTH_PATHS: Final[tuple[str, ...]] = ("/", "/health")

# WebSocket upgrades here get the health projection instead of a session.
# "/" stays a relay entry: it is the default client URL.
HEALTH_UPGRADE_PATH: Final[str] = "/health"

# ASGI extension that lets the server answer a WebSocket upgrade with a plain
# HTTP response instead of a handshake
DENIAL_EXTENSION: Final[str] = "websocket.http.response"

# Envelope discriminator that moves a connection into a room
SUBSCRIBE_ACTION: Final[str] = "subscribe"

# Keep-alive traffic relayed like everything else but not logged per message
QUIET_MESSAGE_TYPES: Final[frozenset[str]] = frozenset({"ping", "pong"})

# Handshake header that carries the shared password
AUTH_HEADER: Final[str] = "sec-websocket-protocol"

UNAUTHORIZED_BODY: Final[str] = "Unauthorized: Invalid password"
UPGRADE_REQUIRED_BODY: Final[str] = "WebSocket signaling server. Connect via WebSocket."
