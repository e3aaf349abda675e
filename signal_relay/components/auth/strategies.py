"""
Authentication Strategies for the relay.

Implements Strategy pattern for pluggable handshake authentication.
The relay ships a single shared-secret strategy: the password travels in the
Sec-WebSocket-Protocol negotiation header (never the URL or message stream)
and is echoed back as the accepted subprotocol.
"""

from __future__ import annotations

import hmac
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

from signal_relay.components.core.constants import AUTH_HEADER, WSCloseCode
from signal_relay.config.logging import mask_secret
from signal_relay.exceptions import AuthenticationFailure

if TYPE_CHECKING:
    from fastapi import WebSocket


logger = logging.getLogger(__name__)


# =============================================================================
# Result Types
# =============================================================================


@dataclass(frozen=True, slots=True)
class AuthResult:
    """
    Result of authentication attempt.

    Attributes:
        success: Whether authentication succeeded.
        subprotocol: Value to echo back in the handshake response.
        error_message: Human-readable error message if failed.
        close_code: WebSocket close code to use if the server cannot send a 401.
        audit_reason: Short reason code for audit logging.
    """

    success: bool
    subprotocol: str | None = None
    error_message: str | None = None
    close_code: int = WSCloseCode.AUTH_FAILED
    audit_reason: str | None = None

    @classmethod
    def ok(cls, subprotocol: str) -> "AuthResult":
        """Create successful authentication result."""
        return cls(success=True, subprotocol=subprotocol)

    @classmethod
    def fail(
        cls,
        message: str,
        close_code: int = WSCloseCode.AUTH_FAILED,
        audit_reason: str = "auth_failed",
    ) -> "AuthResult":
        """Create failed authentication result."""
        return cls(
            success=False,
            error_message=message,
            close_code=close_code,
            audit_reason=audit_reason,
        )


# =============================================================================
# Strategy Interface
# =============================================================================


class AuthStrategy(ABC):
    """
    Abstract base class for handshake authentication strategies.

    Usage:
        strategy = ConnectionAuthenticator(password)
        result = await strategy.authenticate(websocket)
        if result.success:
            await websocket.accept(subprotocol=result.subprotocol)
    """

    @abstractmethod
    async def authenticate(self, websocket: "WebSocket") -> AuthResult:
        """
        Authenticate a WebSocket connection before it is accepted.

        Args:
            websocket: The WebSocket connection (for headers).

        Returns:
            AuthResult indicating success/failure.
        """
        pass


# =============================================================================
# Shared Secret Strategy
# =============================================================================


class ConnectionAuthenticator(AuthStrategy):
    """
    Shared-secret authentication over Sec-WebSocket-Protocol.

    The presented value is compared byte-for-byte with the configured
    password using a constant-time comparison. No partial credentials,
    no lockout: a mismatch rejects only this connection attempt.
    """

    def __init__(self, password: str) -> None:
        """
        Initialize the authenticator.

        Args:
            password: The process-wide shared secret.
        """
        self._password = password.encode("utf-8")

    def verify(self, presented: str | None) -> str:
        """
        Check a presented credential.

        Args:
            presented: Raw header value, or None when the header is absent.

        Returns:
            The credential to echo back to the client.

        Raises:
            AuthenticationFailure: If the credential is absent or does not match.
        """
        if not presented:
            raise AuthenticationFailure(reason="missing_credential")

        if not hmac.compare_digest(presented.encode("utf-8"), self._password):
            raise AuthenticationFailure(
                reason="invalid_password",
                provided_length=len(presented),
            )

        return presented

    async def authenticate(self, websocket: "WebSocket") -> AuthResult:
        """Authenticate using the Sec-WebSocket-Protocol header."""
        presented = websocket.headers.get(AUTH_HEADER)

        try:
            subprotocol = self.verify(presented)
        except AuthenticationFailure as e:
            logger.warning(
                "Authentication FAILED",
                reason=e.reason,
                provided=mask_secret(presented),
                provided_length=len(presented) if presented else 0,
                expected_length=len(self._password),
            )
            return AuthResult.fail(e.message, audit_reason=e.reason)

        logger.debug("Authentication SUCCESS", protocol=mask_secret(subprotocol))
        return AuthResult.ok(subprotocol)
