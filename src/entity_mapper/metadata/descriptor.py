"""
Immutable per-type mapping metadata.

An :class:`EntityDescriptor` is built once per entity class by the
:class:`~entity_mapper.metadata.registry.MetadataRegistry` and never
mutated afterwards. It owns the SQLAlchemy ``Table`` used to emit every
statement touching the entity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy import Column as SAColumn
from sqlalchemy import FetchedValue, Integer, MetaData
from sqlalchemy import Table as SATable

from ..exceptions import ConfigurationError, MappingError, NotAFieldError
from .types import column_type_for, is_boolean, is_nullable

if TYPE_CHECKING:
    from sqlalchemy.sql.elements import ColumnElement

    from ..markers import Table


@dataclass(frozen=True)
class FieldBinding:
    """One mapped property: accessor name, bare column name, auto-generated flag."""

    property_name: str
    column_name: str
    is_auto_generated: bool = False
    annotation: Any = field(default=None, compare=False)

    @property
    def is_boolean(self) -> bool:
        return is_boolean(self.annotation)

    @property
    def is_nullable(self) -> bool:
        return is_nullable(self.annotation)


@dataclass(frozen=True)
class QualifiedColumn:
    """``table.column`` reference to a bound column of a resolved entity."""

    descriptor: EntityDescriptor = field(repr=False, compare=False)
    binding: FieldBinding
    table_name: str

    @property
    def column_name(self) -> str:
        return self.binding.column_name

    @property
    def name(self) -> str:
        return f"{self.table_name}.{self.binding.column_name}"

    @property
    def entity_type(self) -> type[Any]:
        return self.descriptor.entity_type

    def expression(self) -> ColumnElement[Any]:
        """The SQLAlchemy column object for this reference."""
        return self.descriptor.table.c[self.binding.column_name]

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class EntityDescriptor:
    """Table name plus ordered field bindings for one entity type."""

    entity_type: type[Any]
    table_name: str
    fields: tuple[FieldBinding, ...]
    schema: str | None = None
    properties: frozenset[str] = frozenset()
    table: SATable = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for binding in self.fields:
            key = binding.column_name.lower()
            if key in seen:
                raise ConfigurationError(
                    f"Column '{binding.column_name}' is bound more than once on "
                    f"'{self.entity_name}'",
                    entity_name=self.entity_name,
                )
            seen.add(key)
        object.__setattr__(
            self, "properties", self.properties | {b.property_name for b in self.fields}
        )
        object.__setattr__(self, "table", self._build_table())

    @classmethod
    def from_marker(
        cls,
        entity_type: type[Any],
        marker: Table,
        fields: tuple[FieldBinding, ...],
        properties: frozenset[str] = frozenset(),
    ) -> EntityDescriptor:
        return cls(
            entity_type=entity_type,
            table_name=marker.name,
            fields=fields,
            schema=marker.schema,
            properties=properties,
        )

    # -- derived views -------------------------------------------------------

    @property
    def entity_name(self) -> str:
        return self.entity_type.__name__

    @property
    def qualified_table_name(self) -> str:
        return f"{self.schema}.{self.table_name}" if self.schema else self.table_name

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(b.column_name for b in self.fields)

    @property
    def writable_fields(self) -> tuple[FieldBinding, ...]:
        return tuple(b for b in self.fields if not b.is_auto_generated)

    @property
    def identity(self) -> FieldBinding | None:
        """The first auto-generated binding, used as the generated identity."""
        return next((b for b in self.fields if b.is_auto_generated), None)

    def qualify(self, binding: FieldBinding) -> QualifiedColumn:
        return QualifiedColumn(self, binding, self.qualified_table_name)

    # -- lookups -------------------------------------------------------------

    def find_property(self, name: str) -> str | None:
        """Case-insensitive property lookup; an exact match wins."""
        if name in self.properties:
            return name
        folded = name.casefold()
        matches = sorted(p for p in self.properties if p.casefold() == folded)
        return matches[0] if matches else None

    def binding_for(self, property_name: str) -> FieldBinding | None:
        return next((b for b in self.fields if b.property_name == property_name), None)

    def binding_for_column(self, column_name: str) -> FieldBinding | None:
        return next((b for b in self.fields if b.column_name == column_name), None)

    def lookup(self, name: str) -> FieldBinding | None:
        """
        Resolve a caller-supplied property name to its binding, or ``None``
        when the property exists but is unmapped.

        Raises:
            MappingError: the property does not exist on the entity type.
        """
        property_name = self.find_property(name)
        if property_name is None:
            raise MappingError(name, self.entity_name, list(self.properties))
        return self.binding_for(property_name)

    def require(self, name: str) -> FieldBinding:
        """Like :meth:`lookup`, but an unmapped property raises ``NotAFieldError``."""
        binding = self.lookup(name)
        if binding is None:
            raise NotAFieldError(
                self.find_property(name) or name,
                self.entity_name,
                [b.property_name for b in self.fields],
            )
        return binding

    # -- SQLAlchemy table ----------------------------------------------------

    def _build_table(self) -> SATable:
        identity = self.identity
        columns = []
        for binding in self.fields:
            sa_type = column_type_for(binding.annotation)
            if binding is identity:
                columns.append(
                    SAColumn(
                        binding.column_name,
                        sa_type,
                        primary_key=True,
                        autoincrement=isinstance(sa_type, Integer) or "auto",
                    )
                )
            elif binding.is_auto_generated:
                columns.append(
                    SAColumn(
                        binding.column_name, sa_type, server_default=FetchedValue()
                    )
                )
            else:
                columns.append(SAColumn(binding.column_name, sa_type))
        return SATable(self.table_name, MetaData(), *columns, schema=self.schema)
