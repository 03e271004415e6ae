"""
CLI module for tscwatch.

Provides the command-line interface using Click.
"""

from tscwatch.cli.main import cli, main

__all__ = ["main", "cli"]
