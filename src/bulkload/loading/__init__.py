"""Bulk and deduplicating loaders."""

from bulkload.loading.api import bulk_insert, bulk_safe_insert
from bulkload.loading.bulk import BulkLoader
from bulkload.loading.distinct import DistinctLoader
from bulkload.loading.retry import RetryPolicy, RetryReport

__all__ = [
    "BulkLoader",
    "DistinctLoader",
    "RetryPolicy",
    "RetryReport",
    "bulk_insert",
    "bulk_safe_insert",
]
