"""Exception hierarchy for bulk loading.

Every failure that reaches a caller is a BulkLoadError. Driver errors are
chained as __cause__ so the original PostgreSQL diagnostics stay available.
"""

from __future__ import annotations


class BulkLoadError(Exception):
    """Base error for all bulk load failures."""

    def __init__(self, message: str, table: str | None = None):
        self.message = message
        self.table = table
        # Failures of earlier attempts when a retry policy was involved
        self.attempt_errors: list[BulkLoadError] = []
        super().__init__(f"{table}: {message}" if table else message)


class MappingError(BulkLoadError):
    """Record type declarations cannot be mapped to a table."""


class UnsupportedConnectionError(BulkLoadError):
    """The supplied bind is not backed by a psycopg 3 connection."""


class TransferError(BulkLoadError):
    """Streaming rows or inserting from staging failed."""


class StagingSetupError(BulkLoadError):
    """The temporary staging table could not be created."""


__all__ = [
    "BulkLoadError",
    "MappingError",
    "StagingSetupError",
    "TransferError",
    "UnsupportedConnectionError",
]
