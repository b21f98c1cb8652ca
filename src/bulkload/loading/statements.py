"""SQL text for COPY, staging table creation and the anti-join insert.

Identifiers go through SQLAlchemy's PostgreSQL identifier preparer:
lower-case names stay bare, anything else is double-quoted.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import uuid4

from sqlalchemy.dialects.postgresql.base import PGDialect

from bulkload.mapping.descriptors import TypeDescriptor

_preparer = PGDialect().identifier_preparer

# PostgreSQL truncates identifiers beyond NAMEDATALEN - 1 bytes
MAX_IDENTIFIER_BYTES = 63


def quote_identifier(name: str) -> str:
    return _preparer.quote(name)


def quote_relation(name: str) -> str:
    """Quote a possibly schema-qualified table name."""
    schema, _, table = name.rpartition(".")
    if schema:
        return f"{_preparer.quote_schema(schema)}.{_preparer.quote(table)}"
    return _preparer.quote(table)


def column_list(names: Iterable[str]) -> str:
    return ", ".join(quote_identifier(name) for name in names)


def staging_table_name(table_name: str, token: str | None = None) -> str:
    """Unique, unqualified name for a temporary staging table.

    Temporary tables live in pg_temp, so any schema prefix is dropped. The
    table part is shortened so the random token always survives the
    identifier length limit.
    """
    token = token or uuid4().hex
    base = table_name.rpartition(".")[2]
    budget = MAX_IDENTIFIER_BYTES - len(f"tmp__{token}")
    base = base.encode()[:budget].decode(errors="ignore")
    return f"tmp_{base}_{token}"


def copy_statement(relation: str, descriptor: TypeDescriptor) -> str:
    """COPY into an already quoted relation."""
    return f"COPY {relation} ({column_list(descriptor.column_names)}) FROM STDIN (FORMAT BINARY)"


def create_staging_statement(staging_table: str, descriptor: TypeDescriptor) -> str:
    """Zero-row copy of the target's column shape, dropped at transaction end."""
    return (
        f"CREATE TEMP TABLE {quote_identifier(staging_table)} ON COMMIT DROP AS "
        f"SELECT {column_list(descriptor.column_names)} "
        f"FROM {quote_relation(descriptor.table_name)} WITH NO DATA"
    )


def insert_distinct_statement(staging_table: str, descriptor: TypeDescriptor) -> str:
    """Insert staged rows whose distinct key is not yet present in the target.

    DISTINCT ON keeps one row per key; ordering by ctid makes that the
    first row streamed into the staging table.
    """
    table = quote_relation(descriptor.table_name)
    columns = column_list(descriptor.column_names)
    keys = column_list(descriptor.distinct_keys)
    matches = " AND ".join(
        f"main.{quote_identifier(key)} = tmp.{quote_identifier(key)}"
        for key in descriptor.distinct_keys
    )
    return (
        f"INSERT INTO {table} ({columns}) "
        f"SELECT DISTINCT ON ({keys}) {columns} "
        f"FROM {quote_identifier(staging_table)} tmp "
        f"WHERE NOT EXISTS (SELECT 1 FROM {table} main WHERE {matches}) "
        f"ORDER BY {keys}, tmp.ctid"
    )


__all__ = [
    "MAX_IDENTIFIER_BYTES",
    "column_list",
    "copy_statement",
    "create_staging_statement",
    "insert_distinct_statement",
    "quote_identifier",
    "quote_relation",
    "staging_table_name",
]
