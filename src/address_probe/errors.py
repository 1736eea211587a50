"""
Error taxonomy.

Every failure of a run is one of these. None of them is retried: each aborts
the run and maps to exit code 2 with a one-line diagnostic.

- OpenError: store missing, unreadable or not a SQLite database
- SchemaError: store opened but lacks the expected table/column
- ReadError: candidate list missing, unreadable or undecodable
- QueryError: a membership query failed after the store was opened
"""

from pathlib import Path


class AddressProbeError(Exception):
    """Base exception for address probe failures."""

    def __init__(self, resource: Path | str, cause: str):
        self.resource = str(resource)
        self.cause = cause
        super().__init__(f"{self.describe()} '{self.resource}': {cause}")

    def describe(self) -> str:
        return "Failed on"


class OpenError(AddressProbeError):
    """The store could not be opened read-only."""

    def describe(self) -> str:
        return "Cannot open database"


class SchemaError(AddressProbeError):
    """The store lacks the table or column the membership query needs."""

    def describe(self) -> str:
        return "Unexpected schema in database"


class ReadError(AddressProbeError):
    """The candidate list could not be read or decoded."""

    def __init__(self, resource: Path | str, cause: str, line_number: int | None = None):
        self.line_number = line_number
        if line_number is not None:
            cause = f"line {line_number}: {cause}"
        super().__init__(resource, cause)

    def describe(self) -> str:
        return "Cannot read candidate list"


class QueryError(AddressProbeError):
    """A membership query failed mid-run."""

    def __init__(self, resource: Path | str, cause: str, batch_index: int | None = None):
        self.batch_index = batch_index
        super().__init__(resource, cause)

    def describe(self) -> str:
        return "Query failed on database"
