"""
Observability components.
"""

from signal_relay.components.metrics.collector import MetricsCollector

__all__ = ["MetricsCollector"]
