"""CLI commands for CandleGuard.

This package provides the command-line interface: session management,
candle entry and validation, suggestions, and CSV/JSON transfer.
"""

from candleguard.cli.main import cli, main

__all__ = ["cli", "main"]
