"""CLI module for benchkeeper.

This module provides the command-line interface using Typer.
"""

from __future__ import annotations

from benchkeeper.cli.main import app

__all__ = ["app"]
