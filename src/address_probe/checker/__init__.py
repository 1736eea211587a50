"""Batch existence checker for candidate keys against the reference store."""

from address_probe.checker.engine import (
    BatchExistenceChecker,
    CheckerState,
    CheckResult,
    check_file,
)

__all__ = ["BatchExistenceChecker", "CheckerState", "CheckResult", "check_file"]
