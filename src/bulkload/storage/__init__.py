"""Storage targets the loaders stream into."""

from bulkload.storage.postgres import PostgresTarget, as_target
from bulkload.storage.target import (
    BulkTarget,
    Transaction,
    connection_scope,
    transaction_scope,
)

__all__ = [
    "BulkTarget",
    "PostgresTarget",
    "Transaction",
    "as_target",
    "connection_scope",
    "transaction_scope",
]
