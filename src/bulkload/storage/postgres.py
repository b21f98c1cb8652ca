"""PostgreSQL target over SQLAlchemy with the psycopg 3 driver.

SQLAlchemy owns the connection and the transaction. Binary COPY needs the
raw psycopg connection underneath, which shares that same transaction.
"""

from __future__ import annotations

from collections.abc import Generator, Sequence
from contextlib import contextmanager
from typing import Any

import psycopg
from sqlalchemy import Engine, text
from sqlalchemy.engine import Connection, RootTransaction

from bulkload.core.connections import SUPPORTED_DRIVER
from bulkload.core.exceptions import MappingError, UnsupportedConnectionError
from bulkload.encoding.channel import PsycopgRowChannel
from bulkload.storage.target import BulkTarget

_COLUMN_TYPES_SQL = """
    SELECT a.attname, a.atttypid::int
    FROM pg_catalog.pg_attribute a
    WHERE a.attrelid = CAST(:relation AS regclass)
      AND a.attnum > 0
      AND NOT a.attisdropped
"""


class PostgresTarget:
    """BulkTarget backed by a SQLAlchemy Engine or Connection.

    Given an Engine, open() checks a connection out of its pool. Given a
    Connection, that connection is used until closed; reopening then
    checks a fresh one out of its engine.
    """

    def __init__(self, bind: Engine | Connection):
        engine = bind if isinstance(bind, Engine) else bind.engine
        dialect = engine.dialect
        if dialect.name != "postgresql" or dialect.driver != SUPPORTED_DRIVER:
            raise UnsupportedConnectionError(
                f"expected a postgresql+{SUPPORTED_DRIVER} bind, got {dialect.name}+{dialect.driver}"
            )
        self._engine = engine
        self._conn: Connection | None = bind if isinstance(bind, Connection) else None

    @property
    def closed(self) -> bool:
        return self._conn is None or self._conn.closed

    @property
    def connection(self) -> Connection:
        if self._conn is None or self._conn.closed:
            raise RuntimeError("PostgresTarget is not open")
        return self._conn

    def open(self) -> None:
        if self.closed:
            self._conn = self._engine.connect()

    def close(self) -> None:
        if self._conn is not None and not self._conn.closed:
            self._conn.close()

    def begin(self) -> RootTransaction:
        return self.connection.begin()

    def execute(self, statement: str) -> int:
        result = self.connection.exec_driver_sql(statement)
        return result.rowcount

    def column_types(self, relation: str, columns: Sequence[str]) -> list[int]:
        rows = self.connection.execute(text(_COLUMN_TYPES_SQL), {"relation": relation}).all()
        oids = {name: oid for name, oid in rows}
        missing = [column for column in columns if column not in oids]
        if missing:
            raise MappingError(f"columns {missing} not found", table=relation)
        return [oids[column] for column in columns]

    def driver_connection(self) -> psycopg.Connection[Any]:
        """The psycopg connection under the current SQLAlchemy connection."""
        driver = self.connection.connection.driver_connection
        if not isinstance(driver, psycopg.Connection):
            raise UnsupportedConnectionError(
                f"expected a psycopg.Connection, got {type(driver).__name__}"
            )
        return driver

    @contextmanager
    def copy(
        self, statement: str, types: Sequence[int] | None = None
    ) -> Generator[PsycopgRowChannel]:
        with self.driver_connection().cursor() as cursor:
            with cursor.copy(statement) as copy:
                if types:
                    copy.set_types(list(types))
                yield PsycopgRowChannel(copy)


def as_target(bind: Any) -> BulkTarget:
    """Adapt a SQLAlchemy Engine/Connection, or pass a BulkTarget through.

    Raises:
        UnsupportedConnectionError: For anything else, or a non-psycopg bind
    """
    if isinstance(bind, (Engine, Connection)):
        return PostgresTarget(bind)
    if isinstance(bind, BulkTarget):
        return bind
    raise UnsupportedConnectionError(f"unsupported bind type {type(bind).__name__}")


__all__ = ["PostgresTarget", "as_target"]
