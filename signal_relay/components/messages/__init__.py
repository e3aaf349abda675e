"""
Message components.

Envelope parsing for the subscribe directive.
"""

from signal_relay.components.messages.envelope import MessageEnvelope, parse_envelope

__all__ = [
    "MessageEnvelope",
    "parse_envelope",
]
