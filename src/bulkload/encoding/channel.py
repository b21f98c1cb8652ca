"""Row channels: the per-row, per-value face of a binary COPY stream."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

import psycopg


@runtime_checkable
class RowChannel(Protocol):
    """Streaming sink for one COPY ... FROM STDIN operation."""

    def start_row(self) -> None:
        """Begin a new row. Values written afterwards belong to it."""
        ...

    def write(self, value: Any) -> None:
        """Write one value using the channel's native encoding."""
        ...

    def write_null(self) -> None:
        """Write an explicit NULL for the current column."""
        ...

    def complete(self) -> None:
        """Flush pending data once every row has been written."""
        ...


class PsycopgRowChannel:
    """Adapts psycopg's row-at-a-time Copy.write_row() to RowChannel.

    Values are buffered until the next start_row() or complete(), then
    handed to psycopg, which encodes them with the binary dumpers selected
    by Copy.set_types(). The server sees end-of-stream when the enclosing
    ``cursor.copy()`` context exits.
    """

    def __init__(self, copy: psycopg.Copy):
        self._copy = copy
        self._row: list[Any] | None = None
        self.rows_written = 0

    def start_row(self) -> None:
        self._flush()
        self._row = []

    def write(self, value: Any) -> None:
        if self._row is None:
            raise RuntimeError("write() called before start_row()")
        self._row.append(value)

    def write_null(self) -> None:
        self.write(None)

    def complete(self) -> None:
        self._flush()

    def _flush(self) -> None:
        if self._row is not None:
            self._copy.write_row(self._row)
            self.rows_written += 1
            self._row = None


__all__ = ["PsycopgRowChannel", "RowChannel"]
