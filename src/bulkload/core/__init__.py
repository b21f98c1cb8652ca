"""Core module - configuration, connections, logging and shared models."""

from bulkload.core.config import Settings, get_settings
from bulkload.core.exceptions import (
    BulkLoadError,
    MappingError,
    StagingSetupError,
    TransferError,
    UnsupportedConnectionError,
)
from bulkload.core.models import LoadResult

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Errors
    "BulkLoadError",
    "MappingError",
    "StagingSetupError",
    "TransferError",
    "UnsupportedConnectionError",
    # Models
    "LoadResult",
]
