"""Datastore capability boundary used by the loaders."""

from __future__ import annotations

from collections.abc import Generator, Sequence
from contextlib import AbstractContextManager, contextmanager
from typing import Protocol, runtime_checkable

from bulkload.encoding.channel import RowChannel


class Transaction(Protocol):
    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@runtime_checkable
class BulkTarget(Protocol):
    """A transactional connection that can run statements and binary COPY.

    Statements and relation names are passed already quoted.
    """

    @property
    def closed(self) -> bool: ...

    def open(self) -> None: ...

    def close(self) -> None: ...

    def begin(self) -> Transaction: ...

    def execute(self, statement: str) -> int:
        """Run a statement and return its row count."""
        ...

    def column_types(self, relation: str, columns: Sequence[str]) -> list[int]:
        """Type OIDs of ``columns`` in ``relation``, in the given order."""
        ...

    def copy(
        self, statement: str, types: Sequence[int] | None = None
    ) -> AbstractContextManager[RowChannel]:
        """Open a COPY ... FROM STDIN stream; end-of-stream is sent on exit."""
        ...


@contextmanager
def connection_scope(target: BulkTarget) -> Generator[BulkTarget]:
    """Open the target if needed and close it on every exit path."""
    if target.closed:
        target.open()
    try:
        yield target
    finally:
        if not target.closed:
            target.close()


@contextmanager
def transaction_scope(target: BulkTarget) -> Generator[Transaction]:
    """Commit on success, roll back on any exception and re-raise."""
    transaction = target.begin()
    try:
        yield transaction
        transaction.commit()
    except Exception:
        transaction.rollback()
        raise


__all__ = ["BulkTarget", "Transaction", "connection_scope", "transaction_scope"]
