"""
Read-only SQLite reference store.

The store holds a single table of unique key strings. It is opened with
``mode=ro`` and ``PRAGMA query_only``; no statement issued through it can
modify the file.

Membership queries use one prepared statement per distinct batch size. The
SQL text for each size is built once and reused, so the ``sqlite3`` statement
cache keeps the compiled statement and only the bound values change from one
batch to the next.
"""

import logging
import sqlite3
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

from ..config import StoreConfig
from ..errors import OpenError, QueryError, SchemaError

logger = logging.getLogger(__name__)


def _quote(identifier: str) -> str:
    """Quote an SQL identifier."""
    return '"' + identifier.replace('"', '""') + '"'


class AddressStore:
    """
    Read-only handle on the reference store.

    Usage:
        with AddressStore(config) as store:
            found = store.fetch_existing(["1A1zP1...", "12c6DS..."])

    The connection is opened by ``open()`` (or on entering the context) and
    released by ``close()`` on every exit path. It must stay open until the
    last batch has been queried.
    """

    def __init__(self, config: StoreConfig):
        """
        Initialize store handle. Nothing is opened yet.

        Args:
            config: Store settings (path, table, column, pragmas)
        """
        self.config = config
        self.path = Path(config.path)
        self.query_count = 0
        self._conn: sqlite3.Connection | None = None
        self._sql_cache: dict[int, str] = {}

    def __enter__(self) -> "AddressStore":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> "AddressStore":
        """
        Open the store read-only, verify it and apply pragmas.

        Raises:
            OpenError: Path missing, not a file, or not a SQLite database
            SchemaError: Table or column missing
        """
        if self._conn is not None:
            return self

        if not self.path.exists():
            raise OpenError(self.path, "no such file")
        if not self.path.is_file():
            raise OpenError(self.path, "not a regular file")

        conn = self._get_connection()
        try:
            self._verify_database(conn)
            self._verify_schema(conn)
            if self.config.apply_pragmas:
                self._apply_pragmas(conn)
        except BaseException:
            conn.close()
            raise

        self._conn = conn
        logger.debug(
            f"Opened {self.path} read-only "
            f"(table={self.config.table}, column={self.config.column})"
        )
        return self

    def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        conn.close()
        logger.debug(f"Closed {self.path} after {self.query_count} membership query(ies)")

    def _get_connection(self) -> sqlite3.Connection:
        """Get a read-only connection with a busy timeout."""
        uri = self.path.resolve().as_uri() + "?mode=ro"
        try:
            return sqlite3.connect(
                uri,
                uri=True,
                timeout=self.config.busy_timeout_seconds,
            )
        except sqlite3.Error as e:
            raise OpenError(self.path, str(e)) from e

    def _verify_database(self, conn: sqlite3.Connection) -> None:
        """Read the schema table; fails if the file is not a SQLite database."""
        try:
            conn.execute("SELECT count(*) FROM sqlite_master").fetchone()
        except sqlite3.DatabaseError as e:
            raise OpenError(self.path, str(e)) from e

    def _verify_schema(self, conn: sqlite3.Connection) -> None:
        """Check that the configured table and column exist."""
        table, column = self.config.table, self.config.column
        try:
            rows = conn.execute(f"PRAGMA table_info({_quote(table)})").fetchall()
        except sqlite3.DatabaseError as e:
            raise OpenError(self.path, str(e)) from e

        if not rows:
            raise SchemaError(self.path, f"no such table: {table}")

        columns = {row[1] for row in rows}
        if column not in columns:
            raise SchemaError(self.path, f"no such column: {table}.{column}")

    def _apply_pragmas(self, conn: sqlite3.Connection) -> None:
        """
        Apply the configured pragmas in one pass.

        A pragma the store refuses is logged and skipped; pragmas only tune
        I/O and never change query results.
        """
        store_page_size = conn.execute("PRAGMA page_size").fetchone()[0]
        for name, value in self.config.pragmas.statements(store_page_size):
            try:
                conn.execute(f"PRAGMA {name} = {value}").fetchall()
            except sqlite3.Error as e:
                logger.warning(f"Store refused PRAGMA {name} = {value}: {e}")
            else:
                logger.debug(f"PRAGMA {name} = {value}")

    @property
    def max_batch_size(self) -> int:
        """Largest number of values a single membership query can bind."""
        if self._conn is None:
            raise QueryError(self.path, "store is not open")
        return self._conn.getlimit(sqlite3.SQLITE_LIMIT_VARIABLE_NUMBER)

    def membership_sql(self, size: int) -> str:
        """Return the membership query for exactly ``size`` keys."""
        sql = self._sql_cache.get(size)
        if sql is None:
            table, column = _quote(self.config.table), _quote(self.config.column)
            placeholders = ", ".join("?" * size)
            sql = f"SELECT {column} FROM {table} WHERE {column} IN ({placeholders})"
            self._sql_cache[size] = sql
            logger.debug(f"Prepared membership query for {size} key(s)")
        return sql

    def fetch_existing(self, keys: Sequence[str], batch_index: int | None = None) -> list[str]:
        """
        Return the keys of this batch that exist in the reference set.

        Issues exactly one query for a non-empty batch.

        Raises:
            SchemaError: The table or column disappeared
            QueryError: Any other failure (closed store, I/O error, corruption)
        """
        if self._conn is None:
            raise QueryError(self.path, "store is not open", batch_index)
        if not keys:
            return []

        sql = self.membership_sql(len(keys))
        self.query_count += 1
        try:
            rows = self._conn.execute(sql, tuple(keys)).fetchall()
        except sqlite3.OperationalError as e:
            message = str(e)
            if message.startswith(("no such table", "no such column")):
                raise SchemaError(self.path, message) from e
            raise QueryError(self.path, message, batch_index) from e
        except sqlite3.Error as e:
            raise QueryError(self.path, str(e), batch_index) from e

        return [row[0] for row in rows]


@contextmanager
def open_store(config: StoreConfig) -> Iterator[AddressStore]:
    """Context manager yielding an open store, closed on every exit path."""
    store = AddressStore(config)
    store.open()
    try:
        yield store
    finally:
        store.close()
