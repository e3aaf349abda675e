"""
Metrics Collector for the relay.

Centralizes counters for observability. Counters are advisory: they are
exposed on the detailed health endpoint and never drive relay decisions.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, asdict
from typing import Any


@dataclass
class ConnectionMetrics:
    """Metrics for connection lifecycle."""
    accepted: int = 0
    rejected_auth: int = 0
    closed: int = 0
    errors: int = 0


@dataclass
class RelayMetrics:
    """Metrics for message handling."""
    received: int = 0
    subscribes: int = 0
    deliveries: int = 0
    recipients_dropped: int = 0
    orphaned: int = 0
    malformed: int = 0
    oversized: int = 0


class MetricsCollector:
    """
    Thread-safe metrics collector.

    Provides atomic increment operations and snapshot retrieval.

    Usage:
        metrics = MetricsCollector()
        metrics.increment_connections_accepted()
        stats = metrics.get_snapshot()
    """

    def __init__(self) -> None:
        """Initialize metrics collector."""
        self._lock = threading.Lock()
        self._connection = ConnectionMetrics()
        self._relay = RelayMetrics()

    # ==========================================================================
    # Connection Metrics
    # ==========================================================================

    def increment_connections_accepted(self) -> None:
        with self._lock:
            self._connection.accepted += 1

    def increment_connections_rejected_auth(self) -> None:
        with self._lock:
            self._connection.rejected_auth += 1

    def increment_connections_closed(self) -> None:
        with self._lock:
            self._connection.closed += 1

    def increment_connection_errors(self) -> None:
        with self._lock:
            self._connection.errors += 1

    # ==========================================================================
    # Relay Metrics
    # ==========================================================================

    def increment_messages_received(self) -> None:
        with self._lock:
            self._relay.received += 1

    def increment_subscribes(self) -> None:
        with self._lock:
            self._relay.subscribes += 1

    def record_fanout(self, delivered: int, dropped: int) -> None:
        """Record the outcome of one fan-out."""
        with self._lock:
            self._relay.deliveries += delivered
            self._relay.recipients_dropped += dropped

    def increment_orphaned(self) -> None:
        with self._lock:
            self._relay.orphaned += 1

    def increment_malformed(self) -> None:
        with self._lock:
            self._relay.malformed += 1

    def increment_oversized(self) -> None:
        with self._lock:
            self._relay.oversized += 1

    # ==========================================================================
    # Snapshot
    # ==========================================================================

    def get_snapshot(self) -> dict[str, Any]:
        """
        Get a snapshot of all metrics.

        Returns a copy to prevent modification of internal state.
        Names follow {category}_{metric}.
        """
        with self._lock:
            snapshot = {f"connections_{k}": v for k, v in asdict(self._connection).items()}
            snapshot.update({f"messages_{k}": v for k, v in asdict(self._relay).items()})
            return snapshot

    def reset(self) -> dict[str, Any]:
        """Reset all metrics and return the previous values."""
        snapshot = self.get_snapshot()
        with self._lock:
            self._connection = ConnectionMetrics()
            self._relay = RelayMetrics()
        return snapshot
