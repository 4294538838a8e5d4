"""Command-line interface for the tuitbot bridge."""

from tuitbot_bridge.cli.main import cli, main

__all__ = ["cli", "main"]
