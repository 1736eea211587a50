"""
Reference Store (SQLite-based, read-only).

Opens the embedded reference database read-only, applies performance
pragmas, verifies the table/column exist and answers batched membership
queries.
"""

from .sqlite_store import AddressStore, open_store

__all__ = [
    "AddressStore",
    "open_store",
]
