"""
Configuration management.

All configuration for a probe run is defined here as immutable dataclasses.
They are built once (defaults, then YAML file, then environment, then CLI
arguments) and passed explicitly to the store and the checker; nothing reads
ambient settings after startup.

Key invariants:
- The store is always opened read-only; no setting can change that
- Pragmas are performance hints only and never change query results
- batch_size is a performance parameter, not a semantic one
"""

import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path

import yaml

DEFAULT_DB_PATH = "btc_addresses.db"
DEFAULT_CANDIDATES_PATH = "addressonly.txt"
DEFAULT_CONFIG_PATH = "address_probe.yaml"
DEFAULT_BATCH_SIZE = 1000

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_PRAGMA_VALUE_RE = re.compile(r"^-?[A-Za-z0-9_]+$")


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("Invalid configuration: " + "; ".join(errors))


@dataclass(frozen=True)
class StorePragmas:
    """Connection pragmas applied once right after the store is opened.

    None of these change what a membership query returns. A value of None
    leaves the corresponding pragma untouched.
    """

    # No rollback journal, so no side files next to the store
    journal_mode: str | None = "OFF"
    # Reads need no durability
    synchronous: str | None = "OFF"
    # Temporary b-trees (sorting the IN list) stay in memory
    temp_store: str | None = "MEMORY"
    # Memory-mapped I/O window in bytes (256 MiB)
    mmap_size: int | None = 268_435_456
    # None = read the store's own page size and set that explicitly
    page_size: int | None = None
    # Negative = size in KiB (about 64 MB of hot pages kept across batches)
    cache_size: int | None = -64_000
    # Refuse any statement that would modify the store
    query_only: bool | None = True
    read_uncommitted: bool | None = True

    def statements(self, store_page_size: int | None = None) -> list[tuple[str, str]]:
        """Return (name, value) pairs in the order they are applied."""
        page_size = self.page_size if self.page_size is not None else store_page_size
        pairs: list[tuple[str, object]] = [
            ("journal_mode", self.journal_mode),
            ("synchronous", self.synchronous),
            ("temp_store", self.temp_store),
            ("mmap_size", self.mmap_size),
            ("page_size", page_size),
            ("cache_size", self.cache_size),
            ("query_only", self.query_only),
            ("read_uncommitted", self.read_uncommitted),
        ]
        return [(name, _pragma_value(value)) for name, value in pairs if value is not None]


def _is_identifier(value: object) -> bool:
    return isinstance(value, str) and bool(_IDENTIFIER_RE.match(value))


def _pragma_value(value: object) -> str:
    if isinstance(value, bool):
        return "ON" if value else "OFF"
    return str(value)


@dataclass(frozen=True)
class StoreConfig:
    """Reference store settings."""

    path: Path = field(default_factory=lambda: Path(DEFAULT_DB_PATH))
    table: str = "addresses"
    column: str = "address"
    # How long to wait on a locked store before failing (seconds)
    busy_timeout_seconds: float = 5.0
    apply_pragmas: bool = True
    pragmas: StorePragmas = field(default_factory=StorePragmas)


@dataclass(frozen=True)
class CheckerConfig:
    """Batch existence checker settings."""

    batch_size: int = DEFAULT_BATCH_SIZE
    # Stop after the first batch that yields a match
    stop_on_first_match: bool = False


@dataclass(frozen=True)
class Config:
    """Application configuration."""

    store: StoreConfig = field(default_factory=StoreConfig)
    checker: CheckerConfig = field(default_factory=CheckerConfig)
    candidates_path: Path = field(default_factory=lambda: Path(DEFAULT_CANDIDATES_PATH))

    def validate(self) -> list[str]:
        """Validate configuration consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if self.checker.batch_size < 1:
            errors.append("checker.batch_size must be >= 1")
        if not _is_identifier(self.store.table):
            errors.append(f"store.table is not a valid identifier: {self.store.table!r}")
        if not _is_identifier(self.store.column):
            errors.append(f"store.column is not a valid identifier: {self.store.column!r}")
        if self.store.busy_timeout_seconds < 0:
            errors.append("store.busy_timeout_seconds must be >= 0")

        page_size = self.store.pragmas.page_size
        if page_size is not None and (
            not isinstance(page_size, int)
            or isinstance(page_size, bool)
            or page_size < 512
            or page_size & (page_size - 1)
        ):
            errors.append("store.pragmas.page_size must be a power of two >= 512")

        for name, value in self.store.pragmas.statements():
            if not _PRAGMA_VALUE_RE.match(value):
                errors.append(f"store.pragmas.{name} has an invalid value: {value!r}")

        return errors

    def with_overrides(
        self,
        db_path: Path | str | None = None,
        candidates_path: Path | str | None = None,
        table: str | None = None,
        column: str | None = None,
        batch_size: int | None = None,
        stop_on_first_match: bool | None = None,
        apply_pragmas: bool | None = None,
    ) -> "Config":
        """Return a copy with the given (non-None) values replaced."""
        store = self.store
        if db_path is not None:
            store = replace(store, path=Path(db_path))
        if table is not None:
            store = replace(store, table=table)
        if column is not None:
            store = replace(store, column=column)
        if apply_pragmas is not None:
            store = replace(store, apply_pragmas=apply_pragmas)

        checker = self.checker
        if batch_size is not None:
            checker = replace(checker, batch_size=batch_size)
        if stop_on_first_match is not None:
            checker = replace(checker, stop_on_first_match=stop_on_first_match)

        return replace(
            self,
            store=store,
            checker=checker,
            candidates_path=Path(candidates_path) if candidates_path is not None else self.candidates_path,
        )


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name, "").strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    return default


def _section(data: dict, name: str, prefix: str = "") -> dict:
    """Return a nested mapping, empty when absent."""
    value = data.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigValidationError([f"{prefix}{name} must be a mapping, got {value!r}"])
    return value


def _number(value: object, name: str, kind: type):
    """Convert a YAML scalar to int/float; anything else is a config error."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ConfigValidationError([f"{name} must be a number, got {value!r}"])
    try:
        return kind(value)
    except ValueError:
        raise ConfigValidationError([f"{name} must be a number, got {value!r}"]) from None


def _path(value: object, name: str) -> Path:
    if not isinstance(value, (str, os.PathLike)):
        raise ConfigValidationError([f"{name} must be a path, got {value!r}"])
    return Path(value)


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from YAML file.

    A missing file is not an error; defaults are used instead.

    Environment variables can override config values:
    - ADDRESS_PROBE_DB
    - ADDRESS_PROBE_CANDIDATES
    - ADDRESS_PROBE_TABLE
    - ADDRESS_PROBE_COLUMN
    - ADDRESS_PROBE_BATCH_SIZE
    - ADDRESS_PROBE_STOP_ON_FIRST_MATCH (true/false)

    Raises:
        ConfigValidationError: If the resulting configuration is invalid
    """
    if config_path is not None and config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigValidationError([f"{config_path}: top level must be a mapping"])
    else:
        data = {}

    # Store config
    store_data = _section(data, "store")
    pragma_data = _section(store_data, "pragmas", "store.")
    defaults = StorePragmas()
    pragmas = StorePragmas(
        journal_mode=pragma_data.get("journal_mode", defaults.journal_mode),
        synchronous=pragma_data.get("synchronous", defaults.synchronous),
        temp_store=pragma_data.get("temp_store", defaults.temp_store),
        mmap_size=pragma_data.get("mmap_size", defaults.mmap_size),
        page_size=pragma_data.get("page_size", defaults.page_size),
        cache_size=pragma_data.get("cache_size", defaults.cache_size),
        query_only=pragma_data.get("query_only", defaults.query_only),
        read_uncommitted=pragma_data.get("read_uncommitted", defaults.read_uncommitted),
    )

    store = StoreConfig(
        path=_path(
            os.environ.get("ADDRESS_PROBE_DB", store_data.get("path", DEFAULT_DB_PATH)),
            "store.path",
        ),
        table=os.environ.get("ADDRESS_PROBE_TABLE", store_data.get("table", "addresses")),
        column=os.environ.get("ADDRESS_PROBE_COLUMN", store_data.get("column", "address")),
        busy_timeout_seconds=_number(
            store_data.get("busy_timeout_seconds", 5.0), "store.busy_timeout_seconds", float
        ),
        apply_pragmas=bool(store_data.get("apply_pragmas", True)),
        pragmas=pragmas,
    )

    # Checker config
    checker_data = _section(data, "checker")
    batch_size_env = os.environ.get("ADDRESS_PROBE_BATCH_SIZE", "")
    batch_size = checker_data.get("batch_size", DEFAULT_BATCH_SIZE)
    if batch_size_env:
        try:
            batch_size = int(batch_size_env)
        except ValueError:
            raise ConfigValidationError(
                [f"ADDRESS_PROBE_BATCH_SIZE is not an integer: {batch_size_env!r}"]
            ) from None

    checker = CheckerConfig(
        batch_size=_number(batch_size, "checker.batch_size", int),
        stop_on_first_match=_env_bool(
            "ADDRESS_PROBE_STOP_ON_FIRST_MATCH",
            bool(checker_data.get("stop_on_first_match", False)),
        ),
    )

    candidates = os.environ.get(
        "ADDRESS_PROBE_CANDIDATES", data.get("candidates_path", DEFAULT_CANDIDATES_PATH)
    )

    config = Config(
        store=store,
        checker=checker,
        candidates_path=_path(candidates, "candidates_path"),
    )
    errors = config.validate()
    if errors:
        raise ConfigValidationError(errors)
    return config


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = f"""# Address probe configuration
#
# Priority: CLI arguments > environment variables > this file > defaults.

store:
  path: "{DEFAULT_DB_PATH}"
  table: "addresses"                 # Table holding the reference set
  column: "address"                  # Unique key column queried by membership
  busy_timeout_seconds: 5.0
  apply_pragmas: true                # Pragmas only tune I/O, never results
  pragmas:
    journal_mode: "OFF"
    synchronous: "OFF"
    temp_store: "MEMORY"
    mmap_size: 268435456             # 256 MiB
    page_size: null                  # null = use the store's own page size
    cache_size: -64000               # ~64 MB page cache
    query_only: true
    read_uncommitted: true

checker:
  batch_size: {DEFAULT_BATCH_SIZE}                   # Keys per membership query
  stop_on_first_match: false

candidates_path: "{DEFAULT_CANDIDATES_PATH}"
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        f.write(default_config)
