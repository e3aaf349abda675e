"""
Relay Connection Manager.

Thin orchestrator that composes the relay components:
- RoomRegistry: room membership
- LifecycleManager: session open/close
- RelayEngine: subscribe handling and fan-out
- StatsProjector: statistics for the health endpoints

One RelayManager is created per application and shared by every connection.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from signal_relay.components.auth.strategies import ConnectionAuthenticator
from signal_relay.components.connection.locks import LockManager
from signal_relay.components.connection.registry import RoomRegistry
from signal_relay.components.metrics.collector import MetricsCollector
from signal_relay.config.settings import Settings
from signal_relay.core.connection import (
    LifecycleManager,
    RelayEngine,
    RelayStats,
    StatsProjector,
)

logger = logging.getLogger(__name__)

__all__ = ["RelayManager"]


class RelayManager:
    """
    Owns all relay state for one process.

    Lock Ordering (to prevent deadlocks):
    1. room locks, ascending room id (see LockManager.hold_rooms)
    No other lock is ever held together with a room lock.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize the manager with composed components."""
        self.settings = settings
        self.started_at = time.monotonic()

        # Core components
        self._lock_manager = LockManager()
        self.metrics = MetricsCollector()
        self.registry = RoomRegistry(self._lock_manager)
        self.authenticator = ConnectionAuthenticator(settings.signaling_password)

        # Lifecycle component
        self.lifecycle = LifecycleManager(
            registry=self.registry,
            metrics=self.metrics,
            outbox_size=settings.relay_outbox_size,
            send_timeout=settings.relay_send_timeout,
        )

        # Relay component
        self.relay = RelayEngine(registry=self.registry, metrics=self.metrics)

        # Stats component
        self._stats = StatsProjector(
            registry=self.registry,
            lock_manager=self._lock_manager,
            metrics=self.metrics,
            get_total_connections=lambda: self.lifecycle.total_connections,
        )

    # =========================================================================
    # Statistics
    # =========================================================================

    @property
    def uptime(self) -> float:
        """Seconds since the manager was created."""
        return time.monotonic() - self.started_at

    @property
    def total_connections(self) -> int:
        return self.lifecycle.total_connections

    def get_stats(self) -> RelayStats:
        return self._stats.project()

    def health_payload(self) -> dict[str, Any]:
        return self._stats.health_payload(self.uptime)

    def detailed_health_payload(self) -> dict[str, Any]:
        return self._stats.detailed_payload(self.uptime)

    # =========================================================================
    # Maintenance
    # =========================================================================

    def run_maintenance(self) -> int:
        """
        Periodic housekeeping.

        Returns:
            Number of stale room locks pruned.
        """
        pruned = self.registry.prune_locks()
        if pruned:
            logger.info("Pruned stale room locks", count=pruned)
        return pruned

    async def shutdown(self) -> int:
        """Drain and close every session."""
        return await self.lifecycle.shutdown(self.settings.relay_shutdown_drain_timeout)
