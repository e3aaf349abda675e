"""
Centralized structured logging for the relay.
Uses Python's standard logging with JSON formatting for production.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from signal_relay.config.settings import Settings, get_settings


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.
    Outputs logs in a format easily parseable by log aggregation tools.
    """

    def __init__(self, include_source: bool = False) -> None:
        super().__init__()
        self.include_source = include_source

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add extra fields if present
        if hasattr(record, "extra_data") and record.extra_data:
            log_data["data"] = record.extra_data

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.include_source:
            log_data["source"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.now().strftime("%H:%M:%S")

        message = f"{color}[{timestamp}] {record.levelname:8}{self.RESET} {record.name}: {record.getMessage()}"

        # Add extra data if present
        if hasattr(record, "extra_data") and record.extra_data:
            data_str = " | ".join(f"{k}={v}" for k, v in record.extra_data.items())
            message += f" ({data_str})"

        # Add exception info if present
        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return message


class StructuredLogger(logging.Logger):
    """
    Custom logger that supports structured data.
    """

    def _log_with_data(
        self,
        level: int,
        msg: str,
        args: tuple,
        exc_info: Any = None,
        extra: dict | None = None,
        **kwargs: Any,
    ) -> None:
        """Log with optional structured data."""
        if not self.isEnabledFor(level):
            return
        if extra is None:
            extra = {}
        extra["extra_data"] = kwargs if kwargs else None
        super()._log(level, msg, args, exc_info=exc_info, extra=extra, stacklevel=3)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.DEBUG, msg, args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.INFO, msg, args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.WARNING, msg, args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        exc_info = kwargs.pop("exc_info", None)
        self._log_with_data(logging.ERROR, msg, args, exc_info=exc_info, **kwargs)

    def critical(self, msg: str, *args: Any, **kwargs: Any) -> None:
        exc_info = kwargs.pop("exc_info", None)
        self._log_with_data(logging.CRITICAL, msg, args, exc_info=exc_info, **kwargs)


# Set custom logger class
logging.setLoggerClass(StructuredLogger)


def setup_logging(settings: Settings | None = None) -> None:
    """
    Configure logging for the application.
    Call this once at application startup.
    """
    settings = settings or get_settings()
    log_level = logging.DEBUG if settings.debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)

    # Use appropriate formatter based on environment
    if settings.environment == "production":
        formatter: logging.Formatter = StructuredFormatter(include_source=settings.debug)
    else:
        formatter = DevelopmentFormatter()

    handler.setFormatter(formatter)

    # Configure root logger
    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()
    root.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    logging.getLogger("websockets").setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    """
    Get a logger instance with the given name.

    Usage:
        from signal_relay.config.logging import get_logger
        logger = get_logger(__name__)

        logger.info("Client joined room", room=room_id, room_clients=3)
        logger.error("Relay failed", room=room_id, exc_info=True)
    """
    return logging.getLogger(name)  # type: ignore


def mask_secret(secret: str | None, visible: int = 3) -> str:
    """
    Mask a shared secret for logging.

    Shows only the first and last `visible` characters, e.g.
    "change-me-in-production" -> "cha***ion". Short secrets are fully masked.

    Args:
        secret: The secret to mask.
        visible: Characters kept at each end.

    Returns:
        Masked string safe for logging.
    """
    if not secret:
        return "NONE"
    if len(secret) <= visible * 2:
        return "***"
    return f"{secret[:visible]}***{secret[-visible:]}"


# Pre-configured loggers
relay_logger = get_logger("signal_relay")

# Dedicated security audit logger
security_audit_logger = get_logger("security.audit")


def audit_ws_connection(
    event_type: str,
    endpoint: str,
    session_id: str | None = None,
    origin: str | None = None,
    client: str | None = None,
    reason: str | None = None,
    **extra: Any,
) -> None:
    """
    Log WebSocket connection security events.

    Creates structured audit trail for connection lifecycle and security events.

    Args:
        event_type: Type of event (CONNECT, DISCONNECT, AUTH_FAILED, etc.)
        endpoint: WebSocket path the client connected to
        session_id: Relay session ID (for accepted connections)
        origin: Origin header value
        client: Client address (x-forwarded-for or peer address)
        reason: Reason for event (especially for failures)
        **extra: Additional context data
    """
    log_fn = security_audit_logger.warning if event_type == "AUTH_FAILED" else security_audit_logger.info
    log_fn(
        f"WS_AUDIT: {event_type}",
        event_type=event_type,
        endpoint=endpoint,
        session_id=session_id,
        origin=origin,
        client=client,
        reason=reason,
        **extra,
    )
