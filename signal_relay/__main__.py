"""Entry point for `python -m signal_relay`."""

from signal_relay.cli import app

app()
