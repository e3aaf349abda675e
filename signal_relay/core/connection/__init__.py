"""
Connection flows built on the relay components.

- LifecycleManager: session creation and exactly-once teardown
- RelayEngine: subscribe handling and verbatim fan-out
- StatsProjector: health statistics
"""

from signal_relay.core.connection.lifecycle import LifecycleManager
from signal_relay.core.connection.relay import RelayEngine, RelayResult
from signal_relay.core.connection.stats import RelayStats, StatsProjector

__all__ = [
    "LifecycleManager",
    "RelayEngine",
    "RelayResult",
    "RelayStats",
    "StatsProjector",
]
