"""
CLI runner module.

Parses arguments, resolves configuration, runs the batched check and
reports the result on stderr. The exit code carries the outcome:
0 = none found, 1 = found, 2 = error.
"""

from .main import create_cli, main
from .report import Outcome, format_report, select_outcome

__all__ = [
    "create_cli",
    "main",
    "Outcome",
    "format_report",
    "select_outcome",
]
