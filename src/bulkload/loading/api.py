"""Module-level entry points using the default registry and settings."""

from __future__ import annotations

import itertools
from collections.abc import Iterable
from typing import Any

from bulkload.core.models import LoadResult
from bulkload.loading.bulk import BulkLoader
from bulkload.loading.distinct import DistinctLoader
from bulkload.loading.retry import RetryPolicy


def _with_record_type(
    records: Iterable[Any] | None, record_type: type | None
) -> tuple[Iterable[Any], type | None]:
    """Infer the record type from the first record when not given."""
    if records is None:
        return (), record_type
    if record_type is not None:
        return records, record_type

    iterator = iter(records)
    first = next(iterator, None)
    if first is None:
        return (), None
    return itertools.chain([first], iterator), type(first)


def bulk_insert(
    bind: Any,
    records: Iterable[Any] | None,
    record_type: type | None = None,
) -> LoadResult:
    """Stream records into their table in one transaction.

    With no record_type and no records there is nothing to map, and the
    call returns an empty result without touching the database.
    """
    records, record_type = _with_record_type(records, record_type)
    if record_type is None:
        return LoadResult(table="", attempts=0)
    return BulkLoader().load(bind, record_type, records)


def bulk_safe_insert(
    bind: Any,
    records: Iterable[Any] | None,
    record_type: type | None = None,
    retry_policy: RetryPolicy | None = None,
) -> LoadResult:
    """Insert only records whose distinct key is not already stored."""
    records, record_type = _with_record_type(records, record_type)
    if record_type is None:
        return LoadResult(table="", attempts=0)
    return DistinctLoader(retry_policy=retry_policy).load_distinct(bind, record_type, records)


__all__ = ["bulk_insert", "bulk_safe_insert"]
