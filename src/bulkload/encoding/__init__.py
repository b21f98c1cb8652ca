"""Binary row encoding for COPY ... FROM STDIN (FORMAT BINARY)."""

from bulkload.encoding.channel import PsycopgRowChannel, RowChannel
from bulkload.encoding.encoder import is_unset_timestamp, write_row, write_rows

__all__ = [
    "PsycopgRowChannel",
    "RowChannel",
    "is_unset_timestamp",
    "write_row",
    "write_rows",
]
