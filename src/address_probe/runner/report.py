"""
Result reporting and outcome selection.

Everything goes to the diagnostic stream (stderr). Standard output stays
free so the tool can be composed with other commands in scripts.
"""

import sys
from collections.abc import Sequence
from enum import IntEnum
from typing import TextIO

from ..checker import CheckResult


class Outcome(IntEnum):
    """Process outcome, doubling as the exit code."""

    CLEAN = 0  # ran successfully, nothing found
    FOUND = 1  # ran successfully, one or more matches
    ERROR = 2  # any failure; no result is reported


def select_outcome(result: CheckResult) -> Outcome:
    """Pick the outcome for a completed check."""
    return Outcome.FOUND if result.found else Outcome.CLEAN


def format_report(matches: Sequence[str]) -> list[str]:
    """Format matches as report lines (without trailing newlines)."""
    if not matches:
        return ["✗ No addresses found in database"]

    lines = [f"✓ Found {len(matches)} address(es) in database:"]
    lines.extend(f"  → {key}" for key in matches)
    return lines


def format_error(error: BaseException) -> str:
    """Single-line diagnostic for a failed run."""
    message = " ".join(str(error).split()) or type(error).__name__
    return f"Error: {message}"


def write_report(matches: Sequence[str], stream: TextIO | None = None) -> None:
    """Write the report for a completed check."""
    stream = stream or sys.stderr
    for line in format_report(matches):
        print(line, file=stream)
    stream.flush()


def write_error(error: BaseException, stream: TextIO | None = None) -> None:
    """Write the diagnostic for a failed run."""
    stream = stream or sys.stderr
    print(format_error(error), file=stream)
    stream.flush()
