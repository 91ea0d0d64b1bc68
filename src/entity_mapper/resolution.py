"""
Expression resolution: loosely-shaped caller input → validated column terms.

Filter objects, ordering names, update payloads and join conditions all
name *properties*; the resolver validates them against the target type's
:class:`~entity_mapper.metadata.EntityDescriptor` and produces
:class:`FilterTerm`, :class:`OrderTerm` and :class:`JoinSpec` values that
reference qualified columns only.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from types import SimpleNamespace
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from .exceptions import ComparisonTypeError, InvalidStateError
from .markers import table_marker
from .materializer import storage_value
from .operators import Comparing, Comparison, JoinOn

if TYPE_CHECKING:
    from sqlalchemy.sql.elements import ColumnElement

    from .metadata import EntityDescriptor, MetadataRegistry, QualifiedColumn

SCALAR_TYPES: tuple[type, ...] = (
    str,
    bytes,
    bool,
    int,
    float,
    Decimal,
    dt.datetime,
    dt.date,
    dt.time,
    uuid.UUID,
    Enum,
)


@dataclass(frozen=True)
class FilterTerm:
    column: QualifiedColumn
    operator: Comparing
    value: Any

    def to_clause(self) -> ColumnElement[bool]:
        clause: ColumnElement[bool] = self.operator.apply(
            self.column.expression(), self.value
        )
        return clause


@dataclass(frozen=True)
class OrderTerm:
    column: QualifiedColumn
    descending: bool = False

    def to_clause(self) -> ColumnElement[Any]:
        expr = self.column.expression()
        return expr.desc() if self.descending else expr.asc()


@dataclass(frozen=True)
class JoinSpec:
    """Join of ``joined`` on ``left <operator> right`` (left: previous entity)."""

    joined: EntityDescriptor
    left: QualifiedColumn
    right: QualifiedColumn
    operator: Comparing = Comparing.EQUAL_TO

    def to_clause(self) -> ColumnElement[bool]:
        clause: ColumnElement[bool] = self.operator.apply(
            self.left.expression(), self.right.expression()
        )
        return clause


def is_scalar(value: Any) -> bool:
    return value is None or isinstance(value, SCALAR_TYPES)


def named_values(value: Any) -> tuple[dict[str, Any], type[Any] | None]:
    """
    Extract ``{name: value}`` from a loosely-typed input object.

    Returns the values and, when *value* is an instance of a declared
    entity type (a class carrying a table marker), that type. Anonymous
    records (mappings, namespaces, dataclasses, named tuples, unmarked
    pydantic models) return ``None`` as their type.
    """
    if value is None:
        raise ValueError("Expected an object with named fields, got None")
    if isinstance(value, Mapping):
        return {str(k): v for k, v in value.items()}, None
    if isinstance(value, BaseModel):
        if table_marker(type(value)) is not None:
            explicit = value.model_fields_set
            items = {
                k: getattr(value, k) for k in type(value).model_fields if k in explicit
            }
            return items, type(value)
        return {k: getattr(value, k) for k in type(value).model_fields}, None
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}, None
    if isinstance(value, tuple) and hasattr(value, "_asdict"):
        return dict(value._asdict()), None
    if isinstance(value, SimpleNamespace) or hasattr(value, "__dict__"):
        return {k: v for k, v in vars(value).items() if not k.startswith("_")}, None
    raise TypeError(
        f"Cannot read named fields from {type(value).__name__}; pass a mapping, "
        "a dataclass, a named tuple, a namespace or a pydantic model"
    )


class ExpressionResolver:
    """Validates property references against entity metadata."""

    def __init__(self, registry: MetadataRegistry) -> None:
        self._registry = registry

    def descriptor(self, entity_type: type[Any]) -> EntityDescriptor:
        return self._registry.resolve(entity_type)

    # -- filters -------------------------------------------------------------

    def resolve_filter(
        self,
        value: Any,
        target: type[Any] | None,
        default: EntityDescriptor,
    ) -> list[FilterTerm]:
        """
        Turn a filter object into conjunctive terms.

        The lookup type is the filter's own class when it is a declared
        entity, otherwise *target*, otherwise *default* (the main entity).
        """
        items, declared = named_values(value)
        entity_type = declared or target
        descriptor = self.descriptor(entity_type) if entity_type else default

        terms: list[FilterTerm] = []
        for name, raw in items.items():
            # entity instances may carry unmapped fields; those are skipped
            if declared is None:
                binding = descriptor.require(name)
            else:
                binding = descriptor.lookup(name)
            if binding is None:
                continue
            column = descriptor.qualify(binding)
            if is_scalar(raw):
                term = FilterTerm(column, Comparing.EQUAL_TO, storage_value(raw))
            elif Comparison.is_well_formed(raw):
                term = FilterTerm(column, raw.operator, storage_value(raw.value))
            else:
                raise ComparisonTypeError(
                    binding.property_name, descriptor.entity_name, raw
                )
            terms.append(term)
        return terms

    # -- ordering ------------------------------------------------------------

    def resolve_order(
        self,
        names: Iterable[str],
        descriptor: EntityDescriptor,
        *,
        descending: bool = False,
    ) -> list[OrderTerm]:
        """Resolve property names; unmapped properties contribute nothing."""
        terms: list[OrderTerm] = []
        for name in names:
            binding = descriptor.lookup(name)
            if binding is not None:
                terms.append(OrderTerm(descriptor.qualify(binding), descending))
        return terms

    # -- joins ---------------------------------------------------------------

    def resolve_join(
        self,
        left: EntityDescriptor,
        right: EntityDescriptor,
        conditions: Iterable[JoinOn | tuple[str, ...]],
    ) -> list[JoinSpec]:
        specs: list[JoinSpec] = []
        for raw in conditions:
            condition = JoinOn.coerce(raw)
            left_binding = left.require(condition.left)
            right_binding = right.require(condition.right)
            specs.append(
                JoinSpec(
                    joined=right,
                    left=left.qualify(left_binding),
                    right=right.qualify(right_binding),
                    operator=condition.comparing,
                )
            )
        if not specs:
            raise InvalidStateError(
                f"Join with '{right.entity_name}' needs at least one condition"
            )
        return specs

    # -- write payloads ------------------------------------------------------

    def resolve_values(
        self, value: Any, descriptor: EntityDescriptor
    ) -> dict[str, tuple[str, Any]]:
        """
        Map an update payload to ``{column_name: (property_name, value)}``.

        Absent properties raise ``MappingError``; unmapped ones are skipped.
        """
        items, _ = named_values(value)
        resolved: dict[str, tuple[str, Any]] = {}
        for name, raw in items.items():
            binding = descriptor.lookup(name)
            if binding is not None:
                stored = storage_value(raw)
                resolved[binding.column_name] = (binding.property_name, stored)
        return resolved
