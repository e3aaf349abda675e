"""
Connection management components.

Sessions, room registry and the per-room locks guarding it.
"""

from signal_relay.components.connection.locks import LockManager
from signal_relay.components.connection.registry import RoomRegistry
from signal_relay.components.connection.session import ConnectionSession, is_ws_connected

__all__ = [
    "LockManager",
    "RoomRegistry",
    "ConnectionSession",
    "is_ws_connected",
]
