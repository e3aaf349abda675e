"""
Signal Relay main application.

Serves the WebSocket relay on every path, plus a small HTTP surface:
- `/` and `/health`: room statistics (WebSocket upgrades to `/health` too)
- `/health/detailed`: statistics plus metrics and lock figures
- anything else over plain HTTP: 426 Upgrade Required
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from signal_relay import __version__
from signal_relay.components.core.constants import (
    DENIAL_EXTENSION,
    HEALTH_PATHS,
    HEALTH_UPGRADE_PATH,
    UPGRADE_REQUIRED_BODY,
    WSCloseCode,
)
from signal_relay.components.endpoints.base import RelayEndpoint
from signal_relay.config.logging import relay_logger as logger, setup_logging
from signal_relay.config.settings import Settings, get_settings
from signal_relay.connection_manager import RelayManager

# Health answers any method, like the catch-all
_HTTP_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"]


# =============================================================================
# Lifespan and background tasks
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Starts:
    - Maintenance task pruning stale room locks

    On shutdown, drains outboxes and closes every session.
    """
    settings: Settings = app.state.settings
    manager: RelayManager = app.state.manager

    setup_logging(settings)

    secret_errors = settings.validate_production_secrets()
    if secret_errors:
        for error in secret_errors:
            logger.error("Configuration error", error=error)
        if settings.environment == "production":
            raise RuntimeError(
                f"Production configuration errors: {'; '.join(secret_errors)}. "
                "Server will not start with insecure configuration."
            )

    if not settings.password_configured:
        logger.warning("Running with the default signaling password")

    logger.info(
        "Signaling server started",
        port=settings.port,
        env=settings.environment,
        password_configured=settings.password_configured,
    )

    maintenance_task = asyncio.create_task(
        run_maintenance(manager, settings.relay_maintenance_interval),
        name="relay_maintenance",
    )

    yield

    logger.info("Shutting down signaling server")
    maintenance_task.cancel()
    try:
        await maintenance_task
    except asyncio.CancelledError:
        pass

    closed = await manager.shutdown()
    logger.info("Signaling server stopped", sessions_closed=closed)


async def run_maintenance(manager: RelayManager, interval: float) -> None:
    """Periodically prune locks of rooms that no longer exist."""
    while True:
        try:
            await asyncio.sleep(interval)
            manager.run_maintenance()
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.error("Error in relay maintenance", error=str(e))


# =============================================================================
# FastAPI Application
# =============================================================================


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the relay application.

    Args:
        settings: Configuration; defaults to the environment-derived settings.

    Returns:
        A FastAPI app with its own RelayManager in app.state.manager.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Signal Relay",
        description="Authenticated WebSocket rendezvous relay",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.manager = RelayManager(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.origins,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    # -------------------------------------------------------------------------
    # Health Check
    # -------------------------------------------------------------------------

    # Async: the registry snapshot must run on the event loop thread.

    async def health_check(request: Request):
        """Room statistics."""
        return request.app.state.manager.health_payload()

    for health_path in HEALTH_PATHS:
        app.add_api_route(health_path, health_check, methods=_HTTP_METHODS)

    @app.get("/health/detailed")
    async def detailed_health_check(request: Request):
        """Room statistics plus relay metrics and lock figures."""
        payload = request.app.state.manager.detailed_health_payload()
        payload["version"] = request.app.version
        payload["environment"] = request.app.state.settings.environment
        return payload

    @app.api_route("/{path:path}", methods=_HTTP_METHODS)
    def upgrade_required(path: str):
        """Plain HTTP on any other path."""
        return PlainTextResponse(
            UPGRADE_REQUIRED_BODY,
            status_code=426,
            headers={"Upgrade": "websocket"},
        )

    # -------------------------------------------------------------------------
    # WebSocket Endpoint
    # -------------------------------------------------------------------------

    @app.websocket(HEALTH_UPGRADE_PATH)
    async def health_websocket(websocket: WebSocket):
        """Upgrades to the health path get the statistics, not a session."""
        payload = websocket.app.state.manager.health_payload()
        if DENIAL_EXTENSION in websocket.scope.get("extensions", {}):
            await websocket.send_denial_response(JSONResponse(payload))
        else:
            await websocket.close(code=WSCloseCode.NORMAL)

    @app.websocket("/")
    @app.websocket("/{path:path}")
    async def relay_websocket(websocket: WebSocket):
        """Relay endpoint; the path carries no meaning."""
        endpoint = RelayEndpoint(websocket, websocket.app.state.manager)
        await endpoint.run()

    return app


app = create_app()
