"""Reporters for run results."""

from __future__ import annotations

from ospec.reporters.json_reporter import JSONReporter
from ospec.reporters.terminal import TerminalReporter, reporter

__all__ = [
    "JSONReporter",
    "TerminalReporter",
    "reporter",
]
