"""Comparison operators, ordering directions and the comparison wrappers."""

from __future__ import annotations

import operator as _op
from dataclasses import dataclass, fields
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from collections.abc import Callable


class Comparing(str, Enum):
    """Operators a filter term or a join condition may use."""

    EQUAL_TO = "="
    LESS_THAN = "<"
    LESS_THAN_OR_EQUAL_TO = "<="
    GREATER_THAN = ">"
    GREATER_THAN_OR_EQUAL_TO = ">="

    def apply(self, left: Any, right: Any) -> Any:
        """Apply the operator (works on SQLAlchemy column expressions)."""
        return _PYTHON_OPERATORS[self](left, right)


_PYTHON_OPERATORS: dict[Comparing, Callable[[Any, Any], Any]] = {
    Comparing.EQUAL_TO: _op.eq,
    Comparing.LESS_THAN: _op.lt,
    Comparing.LESS_THAN_OR_EQUAL_TO: _op.le,
    Comparing.GREATER_THAN: _op.gt,
    Comparing.GREATER_THAN_OR_EQUAL_TO: _op.ge,
}


class Ordering(Enum):
    ASCENDING = "asc"
    DESCENDING = "desc"

    @classmethod
    def parse(cls, value: Ordering | str) -> Ordering:
        """Accept a member, its value (``"asc"``) or its name (``"Descending"``)."""
        if isinstance(value, Ordering):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            for member in cls:
                if key in (member.value, member.name.lower()):
                    return member
        raise ValueError(f"Invalid ordering: {value!r}")


@dataclass(frozen=True)
class Comparison:
    """
    Single-value carrier signalling a non-default operator for a filter term.

    Subclasses fix the operator; the carried value is always ``value``.
    """

    operator: ClassVar[Comparing]

    value: Any

    @classmethod
    def is_well_formed(cls, candidate: Any) -> bool:
        """True if *candidate* is a wrapper exposing exactly one ``value`` field."""
        if not isinstance(candidate, Comparison) or type(candidate) is Comparison:
            return False
        names = [f.name for f in fields(candidate)]
        return names == ["value"]


@dataclass(frozen=True)
class EqualTo(Comparison):
    operator: ClassVar[Comparing] = Comparing.EQUAL_TO


@dataclass(frozen=True)
class GreaterThan(Comparison):
    operator: ClassVar[Comparing] = Comparing.GREATER_THAN


@dataclass(frozen=True)
class GreaterThanOrEqualTo(Comparison):
    operator: ClassVar[Comparing] = Comparing.GREATER_THAN_OR_EQUAL_TO


@dataclass(frozen=True)
class LessThan(Comparison):
    operator: ClassVar[Comparing] = Comparing.LESS_THAN


@dataclass(frozen=True)
class LessThanOrEqualTo(Comparison):
    operator: ClassVar[Comparing] = Comparing.LESS_THAN_OR_EQUAL_TO


@dataclass(frozen=True)
class JoinOn:
    """
    One join condition: ``left`` names a property of the previously joined
    entity, ``right`` a property of the entity being joined.
    """

    left: str
    right: str
    operator: Comparing | str = Comparing.EQUAL_TO

    @classmethod
    def coerce(cls, condition: JoinOn | tuple[str, ...]) -> JoinOn:
        """Accept ``JoinOn``, ``(left, right)`` or ``(left, operator, right)``."""
        if isinstance(condition, JoinOn):
            return condition
        if isinstance(condition, tuple):
            if len(condition) == 2:
                return cls(condition[0], condition[1])
            if len(condition) == 3:
                return cls(condition[0], condition[2], condition[1])
        raise ValueError(
            f"Invalid join condition {condition!r}: expected JoinOn, "
            "(left, right) or (left, operator, right)"
        )

    @property
    def comparing(self) -> Comparing:
        try:
            return Comparing(self.operator)
        except ValueError:
            raise ValueError(
                f"Unsupported join operator {self.operator!r}; expected one of "
                f"{', '.join(m.value for m in Comparing)}"
            ) from None
