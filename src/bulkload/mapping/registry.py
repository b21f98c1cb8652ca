"""Process-wide cache of type descriptors.

Descriptors are built outside the lock and published with setdefault under
it. Two threads resolving the same unseen type may both build one, but only
the first is stored and both callers receive that instance.
"""

from __future__ import annotations

import threading

from bulkload.core.logging import get_logger
from bulkload.mapping.descriptors import TypeDescriptor

logger = get_logger(__name__)


class TypeRegistry:
    """Maps record types to their TypeDescriptor.

    Entries are added and never invalidated. Field declarations are
    assumed static for the lifetime of the registry.
    """

    def __init__(self) -> None:
        self._descriptors: dict[type, TypeDescriptor] = {}
        self._lock = threading.Lock()

    def resolve(self, record_type: type) -> TypeDescriptor:
        """Return the cached descriptor, introspecting the type on first use."""
        descriptor = self._descriptors.get(record_type)
        if descriptor is not None:
            return descriptor

        built = TypeDescriptor.from_type(record_type)
        with self._lock:
            descriptor = self._descriptors.setdefault(record_type, built)

        if descriptor is built:
            logger.debug(
                "type_descriptor_cached",
                record_type=record_type.__qualname__,
                table=descriptor.table_name,
                columns=list(descriptor.column_names),
                distinct_keys=list(descriptor.distinct_keys),
            )
        return descriptor

    def register(self, record_type: type, descriptor: TypeDescriptor) -> TypeDescriptor:
        """Register an explicit descriptor, skipping introspection.

        Returns the descriptor that ends up cached; an existing entry wins.
        """
        with self._lock:
            return self._descriptors.setdefault(record_type, descriptor)

    def clear(self) -> None:
        """Drop all entries. Intended for tests."""
        with self._lock:
            self._descriptors.clear()

    def __contains__(self, record_type: object) -> bool:
        return record_type in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)


default_registry = TypeRegistry()


__all__ = ["TypeRegistry", "default_registry"]
