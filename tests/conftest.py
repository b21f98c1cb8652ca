"""Shared pytest fixtures for all tests.

FakeTarget is an in-memory BulkTarget. It understands exactly the
statements the loaders generate (staging table creation, COPY, the
anti-join insert), keeps committed rows apart from in-flight ones, and
can be told to fail specific operations.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Generator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

import pytest

from bulkload.mapping.registry import TypeRegistry

TEXT_OID = 25

_CREATE_RE = re.compile(
    r"CREATE TEMP TABLE (\S+) ON COMMIT DROP AS SELECT (.+) FROM (\S+) WITH NO DATA"
)
_INSERT_RE = re.compile(
    r"INSERT INTO (\S+) \((.+?)\) SELECT DISTINCT ON \((.+?)\) .+? FROM (\S+) tmp WHERE NOT EXISTS"
)
_COPY_RE = re.compile(r"COPY (\S+) \((.+)\) FROM STDIN \(FORMAT BINARY\)")


def _unquote(name: str) -> str:
    return name.replace('"', "")


def _names(column_list: str) -> list[str]:
    return [_unquote(part.strip()) for part in column_list.split(",")]


@dataclass
class FakeChannel:
    """RowChannel that records every call."""

    calls: list[tuple[Any, ...]] = field(default_factory=list)
    rows: list[tuple[Any, ...]] = field(default_factory=list)
    completed: bool = False
    _row: list[Any] | None = None

    def start_row(self) -> None:
        self._flush()
        self.calls.append(("start_row",))
        self._row = []

    def write(self, value: Any) -> None:
        assert self._row is not None, "write() before start_row()"
        self.calls.append(("write", value))
        self._row.append(value)

    def write_null(self) -> None:
        assert self._row is not None, "write_null() before start_row()"
        self.calls.append(("write_null",))
        self._row.append(None)

    def complete(self) -> None:
        self._flush()
        self.calls.append(("complete",))
        self.completed = True

    def _flush(self) -> None:
        if self._row is not None:
            self.rows.append(tuple(self._row))
            self._row = None


class FakeTransaction:
    def __init__(self, target: FakeTarget):
        self._target = target

    def commit(self) -> None:
        self._target._finish(commit=True)

    def rollback(self) -> None:
        self._target._finish(commit=False)


class FakeTarget:
    """In-memory stand-in for a PostgreSQL connection."""

    def __init__(self, tables: dict[str, Sequence[str]] | None = None):
        self.columns: dict[str, list[str]] = {
            name: list(columns) for name, columns in (tables or {}).items()
        }
        self.committed: dict[str, list[dict[str, Any]]] = {name: [] for name in self.columns}
        self.events: list[str] = []
        self.statements: list[str] = []
        self.channels: list[FakeChannel] = []
        self._failures: dict[str, list[BaseException]] = {}
        self._closed = True
        self._work: dict[str, list[dict[str, Any]]] | None = None
        self._temp: dict[str, list[str]] = {}

    # -- test helpers ---------------------------------------------------------

    def fail(self, operation: str, error: BaseException | None = None, times: int = 1) -> None:
        """Make the next ``times`` calls of ``operation`` raise ``error``.

        Operations: open, begin, create, copy, insert, commit.
        """
        error = error or RuntimeError(f"{operation} failed")
        self._failures.setdefault(operation, []).extend([error] * times)

    def rows(self, table: str) -> list[dict[str, Any]]:
        return self.committed[table]

    def _maybe_fail(self, operation: str) -> None:
        pending = self._failures.get(operation)
        if pending:
            raise pending.pop(0)

    # -- BulkTarget -----------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    def open(self) -> None:
        self._maybe_fail("open")
        self.events.append("open")
        self._closed = False

    def close(self) -> None:
        self.events.append("close")
        self._closed = True

    def begin(self) -> FakeTransaction:
        assert not self._closed, "begin() on a closed target"
        self._maybe_fail("begin")
        self.events.append("begin")
        self._work = {name: list(rows) for name, rows in self.committed.items()}
        self._temp = {}
        return FakeTransaction(self)

    def _finish(self, commit: bool) -> None:
        if commit:
            self._maybe_fail("commit")
            self.events.append("commit")
            assert self._work is not None
            # ON COMMIT DROP: temporary tables never survive
            self.committed = {
                name: rows for name, rows in self._work.items() if name in self.columns
            }
        else:
            self.events.append("rollback")
        self._work = None
        self._temp = {}

    def execute(self, statement: str) -> int:
        assert self._work is not None, "execute() outside a transaction"
        self.statements.append(statement)

        if match := _CREATE_RE.match(statement):
            self.events.append("create")
            self._maybe_fail("create")
            staging, columns, source = _unquote(match[1]), _names(match[2]), _unquote(match[3])
            if source not in self.columns:
                raise LookupError(f'relation "{source}" does not exist')
            self._temp[staging] = columns
            self._work[staging] = []
            return 0

        if match := _INSERT_RE.match(statement):
            self.events.append("insert")
            self._maybe_fail("insert")
            table, columns = _unquote(match[1]), _names(match[2])
            keys, staging = _names(match[3]), _unquote(match[4])
            existing = {
                tuple(row[k] for k in keys)
                for row in self._work[table]
                if all(row[k] is not None for k in keys)
            }
            seen: set[tuple[Any, ...]] = set()
            inserted = 0
            for row in self._work[staging]:
                key = tuple(row[k] for k in keys)
                if key in seen or key in existing:
                    continue
                seen.add(key)
                self._work[table].append({c: row[c] for c in columns})
                inserted += 1
            return inserted

        raise AssertionError(f"unexpected statement: {statement}")

    def column_types(self, relation: str, columns: Sequence[str]) -> list[int]:
        name = _unquote(relation)
        if name not in self.columns:
            raise LookupError(f'relation "{name}" does not exist')
        return [TEXT_OID for _ in columns]

    @contextmanager
    def copy(
        self, statement: str, types: Sequence[int] | None = None
    ) -> Generator[FakeChannel]:
        assert self._work is not None, "copy() outside a transaction"
        self.statements.append(statement)
        self.events.append("copy")
        self._maybe_fail("copy")
        match = _COPY_RE.match(statement)
        assert match, statement
        relation, columns = _unquote(match[1]), _names(match[2])
        if relation not in self._work:
            raise LookupError(f'relation "{relation}" does not exist')

        channel = FakeChannel()
        self.channels.append(channel)
        yield channel
        # Only reached when the body did not raise: the COPY is accepted
        self._work[relation].extend(dict(zip(columns, row, strict=True)) for row in channel.rows)


@pytest.fixture
def registry() -> TypeRegistry:
    """A fresh descriptor registry per test."""
    return TypeRegistry()


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def make_target() -> Callable[..., FakeTarget]:
    """Factory for in-memory targets: make_target(person=["name", "age"])."""

    def factory(**tables: Sequence[str]) -> FakeTarget:
        return FakeTarget(tables)

    return factory
