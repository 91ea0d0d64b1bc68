"""
Static markers read by the metadata registry.

A table marker is attached to the entity class with the :func:`table`
decorator; property markers travel in ``typing.Annotated`` metadata::

    @table("users")
    class User(BaseModel):
        id: Annotated[int | None, Column("user_id"), AutoIncrement()] = None
        name: Annotated[str, Column("user_name")] = ""
        nickname: str | None = None  # no Column marker: unmapped

Properties without a :class:`Column` marker are ignored by every read and
write operation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

T = TypeVar("T", bound=type)

TABLE_MARKER_ATTR = "__entity_table__"


@dataclass(frozen=True)
class Table:
    """Table-name marker applied to an entity class."""

    name: str
    schema: str | None = None

    @classmethod
    def parse(cls, qualified_name: str) -> Table:
        """Build a marker from ``"table"`` or ``"schema.table"``."""
        if not qualified_name or not qualified_name.strip():
            raise ValueError("Table name must be a non-empty string")
        schema, _, name = qualified_name.strip().rpartition(".")
        return cls(name=name, schema=schema or None)

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.name}" if self.schema else self.name


@dataclass(frozen=True)
class Column:
    """Binds a property to a bare, unqualified column name."""

    name: str

    def __post_init__(self) -> None:
        if not self.name or "." in self.name:
            raise ValueError(f"Invalid column name: {self.name!r}")


@dataclass(frozen=True)
class AutoIncrement:
    """Marks a bound property as generated by the backend (excluded from writes)."""


def table(name: str) -> Callable[[T], T]:
    """Class decorator attaching a :class:`Table` marker to an entity type."""
    marker = Table.parse(name)

    def decorator(cls: T) -> T:
        setattr(cls, TABLE_MARKER_ATTR, marker)
        return cls

    return decorator


def table_marker(cls: type) -> Table | None:
    """Return the table marker of *cls* (inherited markers count)."""
    marker = getattr(cls, TABLE_MARKER_ATTR, None)
    return marker if isinstance(marker, Table) else None
