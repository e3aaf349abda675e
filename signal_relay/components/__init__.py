"""
Relay Components.

Organized into domain-specific modules:
- core/       - Foundational components (constants, context)
- connection/ - Sessions, room registry, per-room locks
- messages/   - Subscribe envelope parsing
- auth/       - Handshake authentication
- endpoints/  - WebSocket endpoint (base, mixins)
- metrics/    - Observability (collector)

New code should import from specific submodules for clarity.
"""

from signal_relay.components.core.constants import WSCloseCode, WSConstants
from signal_relay.components.core.context import RelayContext, sanitize_log_data
from signal_relay.components.connection.locks import LockManager
from signal_relay.components.connection.registry import RoomRegistry
from signal_relay.components.connection.session import ConnectionSession, is_ws_connected
from signal_relay.components.messages.envelope import MessageEnvelope, parse_envelope
from signal_relay.components.auth.strategies import (
    AuthResult,
    AuthStrategy,
    ConnectionAuthenticator,
)
from signal_relay.components.metrics.collector import MetricsCollector

__all__ = [
    "WSCloseCode",
    "WSConstants",
    "RelayContext",
    "sanitize_log_data",
    "LockManager",
    "RoomRegistry",
    "ConnectionSession",
    "is_ws_connected",
    "MessageEnvelope",
    "parse_envelope",
    "AuthResult",
    "AuthStrategy",
    "ConnectionAuthenticator",
    "MetricsCollector",
]
