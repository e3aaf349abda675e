"""
Pytest configuration and fixtures for relay tests.
"""

import time
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketState

from signal_relay.components.connection.locks import LockManager
from signal_relay.components.connection.registry import RoomRegistry
from signal_relay.components.connection.session import ConnectionSession
from signal_relay.components.metrics.collector import MetricsCollector
from signal_relay.config.settings import Settings
from signal_relay.core.connection import LifecycleManager, RelayEngine, StatsProjector
from signal_relay.main import create_app


TEST_PASSWORD = "test-signaling-secret"


# =============================================================================
# Application
# =============================================================================


@pytest.fixture
def test_settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        signaling_password=TEST_PASSWORD,
        environment="test",
        debug=False,
        relay_max_message_size=64 * 1024,
        relay_shutdown_drain_timeout=0.5,
        relay_maintenance_interval=3600.0,
    )


@pytest.fixture
def app(test_settings):
    """A fresh application with its own relay state."""
    return create_app(test_settings)


@pytest.fixture
def client(app):
    """
    Test client with the lifespan running.

    Every WebSocket opened through it shares the client's event loop.
    """
    with TestClient(app) as test_client:
        yield test_client


def wait_until(predicate, timeout: float = 2.0, interval: float = 0.01) -> None:
    """Poll until predicate() is true; subscribes are not acknowledged."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return
        time.sleep(interval)
    raise AssertionError("condition not met before timeout")


# =============================================================================
# Components
# =============================================================================


def make_websocket(headers: dict | None = None) -> MagicMock:
    """A connected fake WebSocket recording everything sent to it."""
    ws = MagicMock()
    ws.client_state = WebSocketState.CONNECTED
    ws.application_state = WebSocketState.CONNECTED
    ws.headers = headers or {}
    ws.accept = AsyncMock()
    ws.close = AsyncMock()
    ws.send_text = AsyncMock()
    ws.send_bytes = AsyncMock()
    return ws


def make_session(outbox_size: int = 16) -> ConnectionSession:
    """A session without a writer task; payloads stay in its outbox."""
    return ConnectionSession(websocket=make_websocket(), outbox_size=outbox_size)


@pytest.fixture
def lock_manager():
    return LockManager(max_cached_locks=100, cleanup_threshold=80)


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def registry(lock_manager):
    return RoomRegistry(lock_manager)


@pytest.fixture
async def lifecycle(registry, metrics):
    """Lifecycle manager; closes whatever a test leaves open."""
    manager = LifecycleManager(
        registry=registry,
        metrics=metrics,
        outbox_size=16,
        send_timeout=1.0,
        accept_timeout=1.0,
    )
    yield manager
    for session in manager.sessions():
        await manager.close(session, reason="test_teardown")


@pytest.fixture
def relay(registry, metrics):
    return RelayEngine(registry=registry, metrics=metrics)


@pytest.fixture
def stats(registry, lock_manager, metrics, lifecycle):
    return StatsProjector(
        registry=registry,
        lock_manager=lock_manager,
        metrics=metrics,
        get_total_connections=lambda: lifecycle.total_connections,
    )


@pytest.fixture
def open_session(lifecycle):
    """Factory: accept a fake WebSocket and return its live session."""

    async def _open(subprotocol: str = TEST_PASSWORD) -> ConnectionSession:
        return await lifecycle.open(make_websocket(), subprotocol=subprotocol)

    return _open
