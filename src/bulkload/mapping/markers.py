"""Column markers attached to record fields with typing.Annotated.

    @dataclass
    class Person:
        __tablename__ = "people"

        name: Annotated[str, Distinct()]
        age: Annotated[int | None, ColumnName("age_years")]
        scratch: Annotated[str, Ignore()] = ""
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ColumnName:
    """Persist the field under a different column name."""

    name: str


@dataclass(frozen=True)
class Ignore:
    """Exclude the field from persistence."""


@dataclass(frozen=True)
class Distinct:
    """Field is part of the distinct key used by deduplicating loads."""


__all__ = ["ColumnName", "Distinct", "Ignore"]
