"""Test fixtures and utilities."""

import sqlite3
from collections.abc import Iterable
from pathlib import Path

import pytest

from address_probe.config import StoreConfig
from address_probe.errors import QueryError

# Sample reference set
SAMPLE_ADDRESSES = [
    "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa",
    "1BvBMSEYstWetqTFn5Au4m4GFg7xJaNVN2",
    "3J98t1WpEZ73CNmQviecrnyiWrnqRhWNLy",
    "bc1qar0srrr7xfkvy5l643lydnw9re59gtzzwf5mdq",
]


def _build_reference_db(
    path: Path,
    addresses: Iterable[str],
    table: str = "addresses",
    column: str = "address",
) -> Path:
    conn = sqlite3.connect(str(path))
    try:
        conn.execute(f"CREATE TABLE {table} ({column} TEXT PRIMARY KEY)")
        conn.executemany(
            f"INSERT INTO {table} ({column}) VALUES (?)", [(a,) for a in addresses]
        )
        conn.commit()
    finally:
        conn.close()
    return path


class FakeStore:
    """In-memory stand-in for AddressStore recording every batch it answers."""

    def __init__(
        self,
        existing: Iterable[str] = (),
        limit: int = 32766,
        fail_on_batch: int | None = None,
    ):
        self.existing = set(existing)
        self.limit = limit
        self.fail_on_batch = fail_on_batch
        self.batches: list[list[str]] = []

    @property
    def max_batch_size(self) -> int:
        return self.limit

    def fetch_existing(self, keys, batch_index=None):
        if batch_index == self.fail_on_batch:
            raise QueryError("fake.db", "disk I/O error", batch_index)
        self.batches.append(list(keys))
        return [k for k in dict.fromkeys(keys) if k in self.existing]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep ADDRESS_PROBE_* variables from the outer environment out of tests."""
    for name in (
        "ADDRESS_PROBE_DB",
        "ADDRESS_PROBE_CANDIDATES",
        "ADDRESS_PROBE_TABLE",
        "ADDRESS_PROBE_COLUMN",
        "ADDRESS_PROBE_BATCH_SIZE",
        "ADDRESS_PROBE_STOP_ON_FIRST_MATCH",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def sample_addresses() -> list[str]:
    """Addresses present in the sample reference database."""
    return list(SAMPLE_ADDRESSES)


@pytest.fixture
def temp_db(tmp_path) -> Path:
    """Temporary database path for testing."""
    return tmp_path / "btc_addresses.db"


@pytest.fixture
def make_reference_db(tmp_path):
    """Factory creating a reference database and returning its path."""

    def _make(
        addresses: Iterable[str],
        name: str = "reference.db",
        table: str = "addresses",
        column: str = "address",
    ) -> Path:
        return _build_reference_db(tmp_path / name, addresses, table, column)

    return _make


@pytest.fixture
def reference_db(temp_db) -> Path:
    """Reference database holding the sample addresses."""
    return _build_reference_db(temp_db, SAMPLE_ADDRESSES)


@pytest.fixture
def store_config(reference_db) -> StoreConfig:
    """Store settings pointing at the sample reference database."""
    return StoreConfig(path=reference_db)


@pytest.fixture
def fake_store():
    """Factory for in-memory stores."""
    return FakeStore


@pytest.fixture
def write_candidates(tmp_path):
    """Factory writing a candidate list and returning its path."""

    def _write(lines: Iterable[str], name: str = "addressonly.txt") -> Path:
        path = tmp_path / name
        path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
        return path

    return _write
