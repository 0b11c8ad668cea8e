"""Ingestion gateway for benchkeeper.

This module is the boundary CI reports into: it parses a finished
run, appends it to the suite's history, and returns the verdict.

Example:
    >>> from benchkeeper.gateway import IngestionGateway
    >>>
    >>> gateway = IngestionGateway(store)
    >>> outcome = await gateway.report("soci-perf", raw_output, commit)
    >>> print(outcome.verdict.summary())
"""

from __future__ import annotations

from benchkeeper.gateway.ingestion import IngestionGateway, ReportOutcome
from benchkeeper.gateway.parsers import parse_run_output

__all__ = [
    "IngestionGateway",
    "ReportOutcome",
    "parse_run_output",
]
