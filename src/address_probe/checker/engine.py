"""Batched existence check of candidate keys against the reference store.

Candidates are partitioned into contiguous batches and each batch is answered
by a single membership query, so a run costs ceil(total_keys / batch_size)
round-trips instead of one per key.

A run either completes or fails as a whole. When any batch fails, the matches
gathered from earlier batches are dropped with the exception: an incomplete
result must never be mistaken for "checked everything, nothing found".
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from ..config import CheckerConfig
from ..errors import AddressProbeError
from ..key_source import KeySource, iter_batches

if TYPE_CHECKING:
    from ..store import AddressStore

logger = logging.getLogger(__name__)


class CheckerState(str, Enum):
    """Lifecycle of a checker run."""

    IDLE = "IDLE"
    RUNNING = "RUNNING"
    DONE = "DONE"
    FAILED = "FAILED"


@dataclass
class CheckResult:
    """Outcome of a completed check.

    ``matches`` holds every candidate found in the reference set exactly once,
    in discovery order (batch order, then the order the store returned rows
    within a batch). It is not guaranteed to follow input order.
    """

    matches: list[str] = field(default_factory=list)
    candidates: int = 0
    batch_sizes: list[int] = field(default_factory=list)
    stopped_early: bool = False

    @property
    def found(self) -> bool:
        return bool(self.matches)

    @property
    def queries(self) -> int:
        return len(self.batch_sizes)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "matches": list(self.matches),
            "found": self.found,
            "candidates": self.candidates,
            "queries": self.queries,
            "batch_sizes": list(self.batch_sizes),
            "stopped_early": self.stopped_early,
        }


class BatchExistenceChecker:
    """Determines which candidate keys exist in the reference store.

    The store must be open for the whole run. Batch size only affects the
    number of queries, never the result: any value yields the same set of
    matches. It is capped at the number of values the store can bind in one
    query.
    """

    def __init__(self, store: AddressStore, config: CheckerConfig | None = None) -> None:
        """Initialize the checker.

        Args:
            store: Open reference store.
            config: Batch size and early-stop settings.
        """
        self.store = store
        self.config = config or CheckerConfig()
        self.state = CheckerState.IDLE
        self.failure: AddressProbeError | None = None

    def effective_batch_size(self) -> int:
        """Configured batch size, capped by the store's bound-variable limit."""
        requested = self.config.batch_size
        if requested < 1:
            raise ValueError(f"batch size must be >= 1, got {requested}")
        limit = self.store.max_batch_size
        if requested > limit:
            logger.debug(f"Batch size {requested} exceeds store limit, using {limit}")
            return limit
        return requested

    def check(self, keys: Iterable[str]) -> CheckResult:
        """Check every candidate key against the store.

        Args:
            keys: Candidate keys. May be a lazy iterable; it is consumed once.

        Returns:
            CheckResult with all matches (no duplicates).

        Raises:
            ReadError: The candidate source failed mid-run.
            SchemaError: The table or column is missing.
            QueryError: A membership query failed.
        """
        self.state = CheckerState.RUNNING
        self.failure = None
        try:
            result = self._run(keys)
        except AddressProbeError as e:
            self.state = CheckerState.FAILED
            self.failure = e
            logger.debug(f"Check failed: {e}")
            raise
        except BaseException:
            self.state = CheckerState.FAILED
            raise

        self.state = CheckerState.DONE
        return result

    def _run(self, keys: Iterable[str]) -> CheckResult:
        batch_size = self.effective_batch_size()
        result = CheckResult()
        seen: set[str] = set()

        for index, batch in enumerate(iter_batches(keys, batch_size)):
            result.candidates += len(batch)
            existing = self.store.fetch_existing(batch, batch_index=index)
            result.batch_sizes.append(len(batch))

            new_matches = 0
            for key in existing:
                if key not in seen:
                    seen.add(key)
                    result.matches.append(key)
                    new_matches += 1

            logger.debug(
                f"Batch {index}: {len(batch)} key(s), {new_matches} new match(es)"
            )

            if new_matches and self.config.stop_on_first_match:
                result.stopped_early = True
                logger.info(f"Stopping after batch {index}: match found")
                break

        logger.info(
            f"Checked {result.candidates} candidate(s) in {result.queries} query(ies), "
            f"{len(result.matches)} match(es)"
        )
        return result


def check_file(
    store: AddressStore,
    candidates_path: Path | str,
    config: CheckerConfig | None = None,
) -> CheckResult:
    """Check every key in a candidate file against an open store."""
    return BatchExistenceChecker(store, config).check(KeySource(candidates_path))
