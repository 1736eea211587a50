"""
Candidate key source.

Streams candidate keys from a line-oriented UTF-8 file: one key per line,
surrounding whitespace stripped, blank lines skipped. Keys are opaque
strings; no address format validation happens here.

The file is never materialized in memory. It is read through a large buffer
and decoded line by line, so a decoding failure can name the exact line.
"""

import logging
from collections.abc import Iterable, Iterator
from itertools import islice
from pathlib import Path

from .errors import ReadError

logger = logging.getLogger(__name__)

# 1 MiB read buffer
DEFAULT_BUFFER_SIZE = 1024 * 1024

_UTF8_BOM = b"\xef\xbb\xbf"


def iter_keys(path: Path | str, buffer_size: int = DEFAULT_BUFFER_SIZE) -> Iterator[str]:
    """
    Yield non-empty, stripped keys from a candidate file.

    Args:
        path: Candidate list path
        buffer_size: Read buffer size in bytes

    Raises:
        ReadError: If the file cannot be opened, read or decoded. Nothing
            is skipped: the first bad line aborts the iteration.
    """
    path = Path(path)
    try:
        f = open(path, "rb", buffering=buffer_size)
    except OSError as e:
        raise ReadError(path, e.strerror or str(e)) from e

    line_number = 0
    count = 0
    with f:
        try:
            for raw in f:
                line_number += 1
                if line_number == 1 and raw.startswith(_UTF8_BOM):
                    raw = raw[len(_UTF8_BOM):]
                try:
                    key = raw.decode("utf-8").strip()
                except UnicodeDecodeError as e:
                    raise ReadError(path, f"invalid UTF-8 ({e.reason})", line_number) from e
                if key:
                    count += 1
                    yield key
        except OSError as e:
            raise ReadError(path, e.strerror or str(e), line_number + 1) from e

    logger.debug(f"Read {count} candidate(s) from {line_number} line(s) of {path}")


class KeySource:
    """Restartable candidate source: each iteration reopens the file."""

    def __init__(self, path: Path | str, buffer_size: int = DEFAULT_BUFFER_SIZE):
        self.path = Path(path)
        self.buffer_size = buffer_size

    def __iter__(self) -> Iterator[str]:
        return iter_keys(self.path, self.buffer_size)

    def __repr__(self) -> str:
        return f"KeySource({str(self.path)!r})"


def iter_batches(keys: Iterable[str], size: int) -> Iterator[list[str]]:
    """
    Partition keys into contiguous batches of at most ``size`` items.

    Only one batch is held in memory at a time. The last batch may be
    smaller; an empty input yields no batches.
    """
    if size < 1:
        raise ValueError(f"batch size must be >= 1, got {size}")

    iterator = iter(keys)
    while True:
        batch = list(islice(iterator, size))
        if not batch:
            return
        yield batch
