"""Command-line driver for the workflow engine."""

from stagegate.cli.main import cli, main

__all__ = ["cli", "main"]
