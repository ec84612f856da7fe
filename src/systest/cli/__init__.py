"""CLI module for systest."""

from systest.cli.main import cli, main

__all__ = [
    "cli",
    "main",
]
