"""Reporters module for benchkeeper.

This module provides output formatters for verdicts and histories:
- Console: Terminal output with tables and colors
- JSON: Machine-readable format
"""

from __future__ import annotations

from benchkeeper.reporters.console import ConsoleReporter
from benchkeeper.reporters.json import JSONReporter

__all__ = [
    "ConsoleReporter",
    "JSONReporter",
]
