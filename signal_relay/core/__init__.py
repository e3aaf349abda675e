"""Core relay flows."""
