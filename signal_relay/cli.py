"""
Signal Relay CLI.

Command-line interface for running and probing the relay.
"""

import asyncio
import json
import sys
import time

import typer
from rich.console import Console
from rich.table import Table

from signal_relay import __version__
from signal_relay.config.logging import mask_secret
from signal_relay.config.settings import get_settings

app = typer.Typer(
    name="signal-relay",
    help="Authenticated WebSocket signaling relay",
    add_completion=False,
)
console = Console()


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """Run the relay server when no command is given."""
    if ctx.invoked_subcommand is None:
        serve(host=None, port=None, reload=False)


# =============================================================================
# Server Commands
# =============================================================================

@app.command()
def serve(
    host: str = typer.Option(None, help="Bind address (default: HOST setting)"),
    port: int = typer.Option(None, help="Bind port (default: PORT setting)"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Run the relay server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.host
    port = port or settings.port

    console.print(f"[blue]Starting relay on {host}:{port}[/blue]")
    if not settings.password_configured:
        console.print("[yellow]SIGNALING_PASSWORD is not set; using the default password[/yellow]")

    # uvicorn exits with status 1 when the address cannot be bound
    uvicorn.run(
        "signal_relay.main:app",
        host=host,
        port=port,
        reload=reload,
        ws_max_size=settings.relay_max_message_size,
        log_config=None,
    )


# =============================================================================
# Health Commands
# =============================================================================

@app.command()
def health(
    url: str = typer.Option("http://localhost:8000/health", help="Health URL"),
):
    """Show room statistics of a running relay."""
    import httpx

    start = time.time()
    try:
        response = httpx.get(url, timeout=5.0)
    except httpx.HTTPError as e:
        console.print(f"[red]✗ {type(e).__name__}: {e}[/red]")
        raise typer.Exit(1)
    elapsed = (time.time() - start) * 1000

    if response.status_code != 200:
        console.print(f"[red]✗ Status {response.status_code}[/red]")
        raise typer.Exit(1)

    stats = response.json()
    table = Table(title=f"Relay Health ({elapsed:.0f}ms)")
    table.add_column("Room", style="cyan")
    table.add_column("Clients", style="green")
    for room, count in sorted(stats.get("rooms", {}).items()):
        table.add_row(room, str(count))

    console.print(table)
    console.print(
        f"rooms={stats.get('totalRooms')} clients={stats.get('totalClients')} "
        f"uptime={stats.get('uptime', 0):.0f}s"
    )


# =============================================================================
# WebSocket Commands
# =============================================================================

@app.command()
def ws_test(
    url: str = typer.Option("ws://localhost:8000/", help="Relay WebSocket URL"),
    password: str = typer.Option(None, help="Shared password (default: SIGNALING_PASSWORD)"),
    room: str = typer.Option("cli-probe", help="Room to join"),
):
    """Check that a relay accepts the password and relays within a room."""
    import websockets

    password = password or get_settings().signaling_password
    subscribe = json.dumps({"type": "subscribe", "topics": [room]})
    probe = json.dumps({"type": "probe", "sent_at": time.time()})

    async def _test() -> bool:
        console.print(f"[blue]Testing {url} with password {mask_secret(password)}[/blue]")
        async with websockets.connect(url, subprotocols=[password], close_timeout=5) as first, \
                websockets.connect(url, subprotocols=[password], close_timeout=5) as second:
            console.print(f"[green]✓ Authenticated (subprotocol {mask_secret(first.subprotocol)})[/green]")
            await first.send(subscribe)
            # subscribes are not acknowledged
            await asyncio.sleep(0.2)
            await second.send(subscribe)
            await second.send(probe)
            # first also sees second's subscribe
            for _ in range(2):
                if await asyncio.wait_for(first.recv(), timeout=5) == probe:
                    return True
        return False

    try:
        relayed = asyncio.run(_test())
    except asyncio.TimeoutError:
        console.print("[red]✗ Timed out waiting for a relayed message[/red]")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"[red]✗ Connection failed: {e}[/red]")
        raise typer.Exit(1)

    if not relayed:
        console.print("[red]✗ Relayed payload differs from the one sent[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓ Message relayed verbatim in room {room}[/green]")


@app.command()
def version():
    """Show version information."""
    table = Table(title="Signal Relay Version")
    table.add_column("Component", style="cyan")
    table.add_column("Version", style="green")

    table.add_row("Relay", __version__)
    table.add_row("Python", sys.version.split()[0])

    console.print(table)


if __name__ == "__main__":
    app()
