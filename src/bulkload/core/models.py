"""Result models shared by the loaders."""

from __future__ import annotations

from pydantic import BaseModel, Field


class LoadResult(BaseModel):
    """Outcome of a successful (or skipped) load call.

    Failures are raised as BulkLoadError; a LoadResult always describes a
    committed transaction, or no transaction at all when ``skipped`` is set.
    """

    table: str
    rows_streamed: int = 0
    rows_inserted: int = 0
    attempts: int = 1
    staging_table: str | None = None
    skipped: bool = False
    retried_errors: list[str] = Field(default_factory=list)
    duration_seconds: float = 0.0

    @classmethod
    def skip(cls, table: str) -> LoadResult:
        """Result for a load that did not touch the database."""
        return cls(table=table, attempts=0, skipped=True)


__all__ = ["LoadResult"]
