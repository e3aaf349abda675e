"""
Configuration module: Settings, logging.
"""

from signal_relay.config.settings import Settings, get_settings, settings
from signal_relay.config.logging import get_logger, setup_logging, mask_secret

__all__ = [
    # settings
    "Settings",
    "get_settings",
    "settings",
    # logging
    "get_logger",
    "setup_logging",
    "mask_secret",
]
