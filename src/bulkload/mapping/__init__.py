"""Record type metadata: markers, descriptors and the descriptor registry."""

from bulkload.mapping.descriptors import ColumnSpec, TypeDescriptor
from bulkload.mapping.markers import ColumnName, Distinct, Ignore
from bulkload.mapping.registry import TypeRegistry, default_registry

__all__ = [
    "ColumnName",
    "ColumnSpec",
    "Distinct",
    "Ignore",
    "TypeDescriptor",
    "TypeRegistry",
    "default_registry",
]
