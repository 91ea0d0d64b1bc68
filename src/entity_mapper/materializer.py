"""
Materializer — converts result rows to entity instances and entities to
write rows.

Features
--------
- **Default allocation** — instances are created with ``model_construct``,
  so unbound properties keep their declared defaults and bound values pass
  through without validation or conversion.
- **Boolean coercion** — a property declared ``bool`` (or ``bool | None``)
  receives ``True`` for any non-zero stored value and ``False`` for zero;
  some backends store booleans as small integers.
- **Strict columns** — a bound column missing from the row raises
  :class:`~entity_mapper.exceptions.MissingColumnError`; nothing is
  defaulted.
- **Positional writes** — ``entity_to_row`` emits writable columns in
  binding order; multi-row inserts rely on that order.
- **Storage values** — enum members are written and compared by their
  ``.value``.
"""

from __future__ import annotations

import enum
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from .exceptions import MappingError, MissingColumnError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from .metadata import EntityDescriptor, FieldBinding

T_Entity = TypeVar("T_Entity")

_MISSING = object()


def coerce_boolean(value: Any, *, nullable: bool) -> bool | None:
    """Coerce a stored value for a boolean property."""
    if value is None:
        return None if nullable else False
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float | Decimal):
        return value != 0
    if isinstance(value, bytes):
        # BIT(n) columns arrive as big-endian bytes
        return int.from_bytes(value, "big") != 0
    return bool(value)


def storage_value(value: Any) -> Any:
    """Return *value* the way the driver binds it; enum members store their value."""
    if isinstance(value, enum.Enum):
        return value.value
    return value


class Materializer(Generic[T_Entity]):
    """Row ↔ entity conversion driven by one entity descriptor."""

    def __init__(self, descriptor: EntityDescriptor) -> None:
        self.descriptor = descriptor
        self.entity_cls: type[T_Entity] = descriptor.entity_type

    # ------------------------------------------------------------------
    # DB → Domain
    # ------------------------------------------------------------------

    def row_to_entity(self, row: Mapping[str, Any], *, prefix: str = "") -> T_Entity:
        """
        Build an entity from *row*.

        ``prefix`` is prepended to each column name when reading, for rows
        whose columns are labelled (joined entities use ``"<table>."``).
        """
        values = {
            binding.property_name: self._read(row, binding, prefix)
            for binding in self.descriptor.fields
        }
        construct = self.entity_cls.model_construct  # type: ignore[attr-defined]
        entity: T_Entity = construct(**values)
        return entity

    def rows_to_entities(self, rows: Iterable[Mapping[str, Any]]) -> list[T_Entity]:
        return [self.row_to_entity(row) for row in rows]

    def row_to_record(
        self, row: Mapping[str, Any], *, prefix: str = ""
    ) -> dict[str, Any]:
        """Like :meth:`row_to_entity` but returns ``{property_name: value}``."""
        return {
            binding.property_name: self._read(row, binding, prefix)
            for binding in self.descriptor.fields
        }

    def _read(self, row: Mapping[str, Any], binding: FieldBinding, prefix: str) -> Any:
        value = row.get(prefix + binding.column_name, _MISSING)
        if value is _MISSING:
            raise MissingColumnError(
                prefix + binding.column_name,
                self.descriptor.entity_name,
                binding.property_name,
            )
        if binding.is_boolean:
            return coerce_boolean(value, nullable=binding.is_nullable)
        return value

    # ------------------------------------------------------------------
    # Domain → DB
    # ------------------------------------------------------------------

    def entity_to_row(self, entity: Any) -> list[tuple[str, Any]]:
        """``(column_name, value)`` for every writable binding, in binding order."""
        row: list[tuple[str, Any]] = []
        for binding in self.descriptor.writable_fields:
            try:
                value = getattr(entity, binding.property_name)
            except AttributeError as e:
                raise MappingError(
                    binding.property_name,
                    type(entity).__name__,
                    message=(
                        f"Cannot write {type(entity).__name__} as "
                        f"'{self.descriptor.entity_name}': missing property "
                        f"'{binding.property_name}'"
                    ),
                ) from e
            row.append((binding.column_name, storage_value(value)))
        return row

    def entities_to_rows(self, entities: Iterable[Any]) -> list[list[tuple[str, Any]]]:
        return [self.entity_to_row(entity) for entity in entities]
