"""Relay WebSocket endpoint and its mixins."""

from signal_relay.components.endpoints.base import RelayEndpoint
from signal_relay.components.endpoints.mixins import (
    ConnectionLifecycleMixin,
    MessageValidationMixin,
)

__all__ = [
    "RelayEndpoint",
    "ConnectionLifecycleMixin",
    "MessageValidationMixin",
]
