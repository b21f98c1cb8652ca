"""Type descriptors: how a record type maps onto a table.

A descriptor is a pure function of the record type's static declarations,
so building it twice yields equal results. The registry relies on that.
"""

from __future__ import annotations

import dataclasses
import types
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from operator import attrgetter
from typing import Annotated, Any, Union, get_args, get_origin, get_type_hints

from pydantic import BaseModel

from bulkload.core.exceptions import MappingError
from bulkload.mapping.markers import ColumnName, Distinct, Ignore

_NONE_TYPE = type(None)


@dataclass(frozen=True)
class ColumnSpec:
    """One persisted field of a record type."""

    name: str
    field_name: str
    accessor: Callable[[Any], Any] = field(compare=False, repr=False)
    nullable: bool = False
    is_timestamp: bool = False

    @classmethod
    def for_field(
        cls,
        field_name: str,
        column: str | None = None,
        nullable: bool = False,
        is_timestamp: bool = False,
    ) -> ColumnSpec:
        """Build a spec that reads ``field_name`` off each record.

        Without an explicit ``column`` the field name is lower-cased, the way
        PostgreSQL folds unquoted identifiers. Explicit names are kept as is.
        """
        if column is not None and not column:
            raise MappingError(f"empty column name for field {field_name!r}")
        return cls(
            name=field_name.lower() if column is None else column,
            field_name=field_name,
            accessor=attrgetter(field_name),
            nullable=nullable,
            is_timestamp=is_timestamp,
        )


@dataclass(frozen=True)
class TypeDescriptor:
    """Table name, ordered columns and distinct key of a record type."""

    record_type: type
    table_name: str
    columns: tuple[ColumnSpec, ...]
    distinct_keys: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        names = self.column_names
        if len(set(names)) != len(names):
            raise MappingError(f"duplicate column names in {names}", table=self.table_name)
        missing = [key for key in self.distinct_keys if key not in names]
        if missing:
            raise MappingError(
                f"distinct keys {missing} are not persisted columns", table=self.table_name
            )

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(column.name for column in self.columns)

    @property
    def has_distinct_keys(self) -> bool:
        return bool(self.distinct_keys)

    @classmethod
    def build(
        cls,
        record_type: type,
        table_name: str,
        columns: Sequence[str | ColumnSpec],
        distinct_keys: Sequence[str] = (),
    ) -> TypeDescriptor:
        """Explicit descriptor for types that cannot carry markers.

        Plain strings in ``columns`` name a field persisted under its
        lower-cased name.
        """
        specs = tuple(
            c if isinstance(c, ColumnSpec) else ColumnSpec.for_field(c) for c in columns
        )
        return cls(
            record_type=record_type,
            table_name=table_name,
            columns=specs,
            distinct_keys=tuple(distinct_keys),
        )

    @classmethod
    def from_type(cls, record_type: type) -> TypeDescriptor:
        """Introspect a dataclass or pydantic model.

        Raises:
            MappingError: If the type is not a dataclass or pydantic model,
                or its declarations are inconsistent
        """
        # Default names fold to lower case, like unquoted identifiers
        table_name = getattr(record_type, "__tablename__", None) or record_type.__name__.lower()

        columns: list[ColumnSpec] = []
        distinct_keys: list[str] = []
        for field_name, annotation, metadata in _declared_fields(record_type):
            markers = {type(marker): marker for marker in metadata}
            if Ignore in markers:
                if Distinct in markers:
                    raise MappingError(
                        f"field {field_name!r} is both ignored and distinct", table=table_name
                    )
                continue

            rename = markers.get(ColumnName)
            spec = ColumnSpec.for_field(
                field_name,
                column=rename.name if isinstance(rename, ColumnName) else None,
                nullable=_is_optional(annotation),
                is_timestamp=_is_timestamp(annotation),
            )
            columns.append(spec)
            if Distinct in markers:
                distinct_keys.append(spec.name)

        if not columns:
            raise MappingError("record type declares no persisted fields", table=table_name)

        return cls(
            record_type=record_type,
            table_name=table_name,
            columns=tuple(columns),
            distinct_keys=tuple(distinct_keys),
        )


def _declared_fields(record_type: type) -> list[tuple[str, Any, Sequence[Any]]]:
    """Return (field name, bare annotation, Annotated metadata) per field."""
    if isinstance(record_type, type) and issubclass(record_type, BaseModel):
        return [
            (name, info.annotation, tuple(info.metadata))
            for name, info in record_type.model_fields.items()
        ]

    if isinstance(record_type, type) and dataclasses.is_dataclass(record_type):
        try:
            hints = get_type_hints(record_type, include_extras=True)
        except NameError as e:
            raise MappingError(
                f"cannot resolve annotations: {e}", table=record_type.__name__
            ) from e

        fields = []
        for f in dataclasses.fields(record_type):
            hint = hints.get(f.name, f.type)
            if get_origin(hint) is Annotated:
                fields.append((f.name, get_args(hint)[0], tuple(hint.__metadata__)))
            else:
                fields.append((f.name, hint, ()))
        return fields

    raise MappingError(
        f"{record_type!r} is neither a dataclass nor a pydantic model",
        table=getattr(record_type, "__name__", None),
    )


def _is_optional(annotation: Any) -> bool:
    if annotation is None or annotation is _NONE_TYPE:
        return True
    if get_origin(annotation) in (Union, types.UnionType):
        return _NONE_TYPE in get_args(annotation)
    return False


def _is_timestamp(annotation: Any) -> bool:
    if get_origin(annotation) in (Union, types.UnionType):
        candidates = [arg for arg in get_args(annotation) if arg is not _NONE_TYPE]
    else:
        candidates = [annotation]
    return any(isinstance(c, type) and issubclass(c, datetime) for c in candidates)


__all__ = ["ColumnSpec", "TypeDescriptor"]
