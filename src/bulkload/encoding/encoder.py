"""Binary row encoder.

Writes records into a RowChannel column by column, in descriptor order.
Per value, the first matching rule applies:

1. nullable column holding None -> NULL
2. datetime equal to datetime.min -> NULL (unset timestamp sentinel,
   regardless of the column's declared optionality)
3. anything else -> written as is, encoded by the channel
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from bulkload.encoding.channel import RowChannel
from bulkload.mapping.descriptors import ColumnSpec, TypeDescriptor


def is_unset_timestamp(value: Any) -> bool:
    """True for datetime.min, naive or timezone-aware."""
    if not isinstance(value, datetime):
        return False
    return value.replace(tzinfo=None) == datetime.min


def _writes_null(column: ColumnSpec, value: Any) -> bool:
    if column.nullable and value is None:
        return True
    return is_unset_timestamp(value)


def write_row(channel: RowChannel, record: Any, descriptor: TypeDescriptor) -> None:
    """Write one record as one row."""
    channel.start_row()
    for column in descriptor.columns:
        value = column.accessor(record)
        if _writes_null(column, value):
            channel.write_null()
        else:
            channel.write(value)


def write_rows(channel: RowChannel, records: Iterable[Any], descriptor: TypeDescriptor) -> int:
    """Write every record in input order and complete the channel.

    Returns:
        Number of rows written
    """
    count = 0
    for record in records:
        write_row(channel, record, descriptor)
        count += 1
    channel.complete()
    return count


__all__ = ["is_unset_timestamp", "write_row", "write_rows"]
