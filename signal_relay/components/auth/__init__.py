"""
Authentication components.

Shared-secret handshake authentication.
"""

from signal_relay.components.auth.strategies import (
    AuthStrategy,
    AuthResult,
    ConnectionAuthenticator,
)

__all__ = [
    "AuthStrategy",
    "AuthResult",
    "ConnectionAuthenticator",
]
