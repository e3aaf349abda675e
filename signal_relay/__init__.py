"""
Signal Relay.

Authenticated WebSocket rendezvous relay: groups connections into rooms and
forwards every message verbatim to the other members of the sender's room.
"""

# Installs the structured logger class before any module logger is created.
from signal_relay.config import logging as _logging  # noqa: F401

__version__ = "1.0.0"
