"""bulkload - binary COPY bulk loading of typed records into PostgreSQL."""

from bulkload.core.exceptions import (
    BulkLoadError,
    MappingError,
    StagingSetupError,
    TransferError,
    UnsupportedConnectionError,
)
from bulkload.core.models import LoadResult
from bulkload.loading import (
    BulkLoader,
    DistinctLoader,
    RetryPolicy,
    RetryReport,
    bulk_insert,
    bulk_safe_insert,
)
from bulkload.mapping import (
    ColumnName,
    ColumnSpec,
    Distinct,
    Ignore,
    TypeDescriptor,
    TypeRegistry,
    default_registry,
)

__version__ = "0.1.0"

__all__ = [
    # Loaders
    "BulkLoader",
    "DistinctLoader",
    "RetryPolicy",
    "RetryReport",
    "bulk_insert",
    "bulk_safe_insert",
    # Mapping
    "ColumnName",
    "ColumnSpec",
    "Distinct",
    "Ignore",
    "TypeDescriptor",
    "TypeRegistry",
    "default_registry",
    # Results and errors
    "BulkLoadError",
    "LoadResult",
    "MappingError",
    "StagingSetupError",
    "TransferError",
    "UnsupportedConnectionError",
]
