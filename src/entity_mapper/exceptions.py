"""
Exception hierarchy for entity-mapper.

All exceptions inherit from ``EntityMapperError`` and provide
``to_dict()`` for API-friendly error responses. Errors raised while
resolving caller input name the entity type and the offending property
so a mapping mistake can be diagnosed without reading generated SQL.
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any


class EntityMapperError(Exception):
    """Root exception for the entire entity-mapper package."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": str(self),
        }


class ConfigurationError(EntityMapperError):
    """An entity type is missing required markers or is declared inconsistently."""

    def __init__(self, message: str, entity_name: str | None = None) -> None:
        self.entity_name = entity_name
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "CONFIGURATION_ERROR",
            "message": str(self),
            "entity": self.entity_name,
        }


class MappingError(EntityMapperError):
    """
    A caller-supplied property name does not exist on the target type.

    Uses fuzzy matching to suggest similar property names.

    Example error message::

        Property 'nmae' is not defined on 'User'.
        Did you mean: name?
        Available properties: active, age, id, name
    """

    def __init__(
        self,
        property_name: str,
        entity_name: str,
        available: list[str] | None = None,
        *,
        message: str | None = None,
    ) -> None:
        self.property_name = property_name
        self.entity_name = entity_name
        self.available = sorted(available or [])
        self.suggestions = get_close_matches(
            property_name, self.available, n=3, cutoff=0.6
        )
        super().__init__(message or self._build_message())

    def _build_message(self) -> str:
        lines = [
            f"Property '{self.property_name}' is not defined on '{self.entity_name}'."
        ]
        if self.suggestions:
            lines.append(f"Did you mean: {', '.join(self.suggestions)}?")
        if self.available:
            lines.append(f"Available properties: {', '.join(self.available)}")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "MAPPING_ERROR",
            "property": self.property_name,
            "entity": self.entity_name,
            "suggestions": self.suggestions,
            "available": self.available,
        }


class NotAFieldError(MappingError):
    """The property exists on the target type but carries no column marker."""

    def __init__(
        self,
        property_name: str,
        entity_name: str,
        available: list[str] | None = None,
    ) -> None:
        super().__init__(
            property_name,
            entity_name,
            available,
            message=(
                f"Property '{property_name}' on '{entity_name}' is not bound to "
                f"a column. Mapped properties: {', '.join(sorted(available or []))}"
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["error"] = "NOT_A_FIELD"
        return result


class ComparisonTypeError(EntityMapperError):
    """A filter value is neither a scalar nor a single-value comparison wrapper."""

    def __init__(self, property_name: str, entity_name: str, value: Any) -> None:
        self.property_name = property_name
        self.entity_name = entity_name
        self.value_type = type(value).__name__
        super().__init__(
            f"Bad comparison type for '{entity_name}.{property_name}': "
            f"{self.value_type} is neither a scalar nor a comparison wrapper "
            "(EqualTo, GreaterThan, GreaterThanOrEqualTo, LessThan, LessThanOrEqualTo)"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "COMPARISON_TYPE_ERROR",
            "property": self.property_name,
            "entity": self.entity_name,
            "value_type": self.value_type,
        }


class InvalidStateError(EntityMapperError):
    """The builder holds a combination of state the requested operation rejects."""


class MissingColumnError(EntityMapperError):
    """A result row lacks a column the entity is bound to."""

    def __init__(self, column_name: str, entity_name: str, property_name: str) -> None:
        self.column_name = column_name
        self.entity_name = entity_name
        self.property_name = property_name
        super().__init__(
            f"Column '{column_name}' (bound to '{entity_name}.{property_name}') "
            "is missing from the result row"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "MISSING_COLUMN",
            "column": self.column_name,
            "entity": self.entity_name,
            "property": self.property_name,
        }


class StatementExecutionError(EntityMapperError):
    """The database driver rejected or failed a statement."""


class TransactionError(EntityMapperError):
    """Transaction or connection lifecycle operations failed."""


__all__: list[str] = [
    "ComparisonTypeError",
    "ConfigurationError",
    "EntityMapperError",
    "InvalidStateError",
    "MappingError",
    "MissingColumnError",
    "NotAFieldError",
    "StatementExecutionError",
    "TransactionError",
]
