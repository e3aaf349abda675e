"""
Foundational components: constants and connection context.
"""

from signal_relay.components.core.constants import WSCloseCode, WSConstants
from signal_relay.components.core.context import RelayContext, sanitize_log_data

__all__ = [
    "WSCloseCode",
    "WSConstants",
    "RelayContext",
    "sanitize_log_data",
]
