"""
Connection Statistics.

Projects the registry into the numbers reported by the health endpoints.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from signal_relay.components.connection.locks import LockManager
    from signal_relay.components.connection.registry import RoomRegistry
    from signal_relay.components.metrics.collector import MetricsCollector


@dataclass(frozen=True)
class RelayStats:
    """Point-in-time room statistics."""

    total_rooms: int
    total_clients: int
    rooms: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRooms": self.total_rooms,
            "totalClients": self.total_clients,
            "rooms": dict(self.rooms),
        }


class StatsProjector:
    """
    Aggregates relay statistics from components.

    All figures in one projection come from a single registry snapshot, so
    totalRooms, totalClients and the per-room map are always consistent
    with each other.
    """

    def __init__(
        self,
        registry: "RoomRegistry",
        lock_manager: "LockManager",
        metrics: "MetricsCollector",
        get_total_connections: callable,
    ) -> None:
        """
        Initialize stats aggregator with dependencies.

        Args:
            registry: Room membership registry
            lock_manager: Per-room locks
            metrics: Collects relay metrics
            get_total_connections: Callback returning live session count
        """
        self._registry = registry
        self._lock_manager = lock_manager
        self._metrics = metrics
        self._get_total_connections = get_total_connections

    def project(self) -> RelayStats:
        """Take one snapshot of the registry."""
        rooms = self._registry.snapshot()
        return RelayStats(
            total_rooms=len(rooms),
            total_clients=sum(rooms.values()),
            rooms=rooms,
        )

    def health_payload(self, uptime: float) -> dict[str, Any]:
        """Body of the plain health check."""
        return {"status": "ok", **self.project().to_dict(), "uptime": uptime}

    def detailed_payload(self, uptime: float) -> dict[str, Any]:
        """Health body plus connection, metric and lock figures."""
        payload = self.health_payload(uptime)
        payload["connections"] = self._get_total_connections()
        payload["metrics"] = self._metrics.get_snapshot()
        payload["locks"] = self._lock_manager.get_stats()
        return payload
