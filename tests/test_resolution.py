"""
Tests for the expression resolver.

Covers:
- Filter inputs of every supported shape (mappings, namespaces,
  dataclasses, named tuples, anonymous and declared pydantic models)
- Operator selection from scalars and comparison wrappers
- MappingError / NotAFieldError / ComparisonTypeError
- Ordering (unmapped properties skipped)
- Join resolution against the left and right entity
- Update payload resolution
"""

from __future__ import annotations

import datetime as dt
import enum
from dataclasses import dataclass
from types import SimpleNamespace
from typing import NamedTuple

import pytest
from entities import Order, User
from pydantic import BaseModel

from entity_mapper import (
    Comparing,
    ComparisonTypeError,
    GreaterThan,
    InvalidStateError,
    JoinOn,
    LessThanOrEqualTo,
    MappingError,
    NotAFieldError,
)
from entity_mapper.resolution import ExpressionResolver, named_values


@pytest.fixture
def resolver(registry):
    return ExpressionResolver(registry)


@pytest.fixture
def user_descriptor(registry):
    return registry.resolve(User)


@dataclass
class NameFilter:
    name: str


class AgeFilter(NamedTuple):
    age: int


class AnonymousFilter(BaseModel):
    name: str = "ada"


# ---------------------------------------------------------------------------
# named_values
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "value",
    [
        {"name": "ada"},
        SimpleNamespace(name="ada"),
        NameFilter(name="ada"),
        AnonymousFilter(),
    ],
)
def test_named_values_anonymous_shapes(value):
    items, declared = named_values(value)
    assert items == {"name": "ada"}
    assert declared is None


def test_named_values_named_tuple():
    assert named_values(AgeFilter(age=3)) == ({"age": 3}, None)


def test_named_values_declared_entity_uses_set_fields_only():
    items, declared = named_values(User(name="ada"))
    assert items == {"name": "ada"}
    assert declared is User


def test_named_values_rejects_none():
    with pytest.raises(ValueError):
        named_values(None)


def test_named_values_rejects_scalars():
    with pytest.raises(TypeError, match="Cannot read named fields"):
        named_values(42)


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


def test_scalar_filter_is_equality(resolver, user_descriptor):
    [term] = resolver.resolve_filter({"name": "ada"}, None, user_descriptor)

    assert term.operator is Comparing.EQUAL_TO
    assert term.value == "ada"
    assert term.column.name == "users.user_name"
    assert str(term.to_clause().compile()) == "users.user_name = :user_name_1"


def test_none_filter_is_null_check(resolver, user_descriptor):
    [term] = resolver.resolve_filter({"name": None}, None, user_descriptor)
    assert str(term.to_clause().compile()) == "users.user_name IS NULL"


@pytest.mark.parametrize(
    "value", ["x", b"x", True, 1, 1.5, dt.date(2024, 1, 1), Comparing.EQUAL_TO]
)
def test_all_scalars_accepted(resolver, user_descriptor, value):
    [term] = resolver.resolve_filter({"age": value}, None, user_descriptor)
    assert term.operator is Comparing.EQUAL_TO


class Level(enum.Enum):
    LOW = 1
    HIGH = 9


def test_enum_members_resolve_to_their_values(resolver, user_descriptor):
    terms = resolver.resolve_filter(
        {"age": Level.HIGH, "id": GreaterThan(Level.LOW)}, None, user_descriptor
    )

    assert [t.value for t in terms] == [9, 1]
    assert terms[0].to_clause().compile().params == {"age_1": 9}


def test_wrapped_filter_uses_wrapper_operator(resolver, user_descriptor):
    terms = resolver.resolve_filter(
        {"age": GreaterThan(17), "id": LessThanOrEqualTo(10)}, None, user_descriptor
    )

    assert [(t.column.column_name, t.operator, t.value) for t in terms] == [
        ("age", Comparing.GREATER_THAN, 17),
        ("user_id", Comparing.LESS_THAN_OR_EQUAL_TO, 10),
    ]
    assert str(terms[0].to_clause().compile()) == "users.age > :age_1"


def test_filter_names_are_case_insensitive(resolver, user_descriptor):
    [term] = resolver.resolve_filter({"AGE": 3}, None, user_descriptor)
    assert term.column.column_name == "age"


def test_filter_absent_property_raises_mapping_error(resolver, user_descriptor):
    with pytest.raises(MappingError) as exc_info:
        resolver.resolve_filter({"agee": 3}, None, user_descriptor)

    assert exc_info.value.property_name == "agee"
    assert exc_info.value.entity_name == "User"
    assert not isinstance(exc_info.value, NotAFieldError)


def test_filter_unmapped_property_raises_not_a_field(resolver, user_descriptor):
    with pytest.raises(NotAFieldError) as exc_info:
        resolver.resolve_filter({"nickname": "x"}, None, user_descriptor)

    assert exc_info.value.property_name == "nickname"


@pytest.mark.parametrize("value", [[1, 2], {"value": 1}, object()])
def test_filter_bad_shape_raises_comparison_type_error(
    resolver, user_descriptor, value
):
    with pytest.raises(ComparisonTypeError) as exc_info:
        resolver.resolve_filter({"age": value}, None, user_descriptor)

    assert exc_info.value.property_name == "age"
    assert exc_info.value.entity_name == "User"


def test_filter_target_type_for_anonymous_input(resolver, user_descriptor):
    [term] = resolver.resolve_filter({"total": 5}, Order, user_descriptor)
    assert term.column.name == "orders.total"
    assert term.column.entity_type is Order


def test_filter_declared_entity_ignores_target(resolver, user_descriptor):
    [term] = resolver.resolve_filter(Order(total=5.0), User, user_descriptor)
    assert term.column.name == "orders.total"


def test_filter_declared_entity_skips_unmapped(resolver, user_descriptor):
    terms = resolver.resolve_filter(
        User(name="ada", nickname="a"), None, user_descriptor
    )
    assert [t.column.column_name for t in terms] == ["user_name"]


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


def test_order_resolution(resolver, user_descriptor):
    terms = resolver.resolve_order(["name", "age"], user_descriptor, descending=True)

    assert [t.column.column_name for t in terms] == ["user_name", "age"]
    assert all(t.descending for t in terms)
    assert str(terms[0].to_clause().compile()) == "users.user_name DESC"


def test_order_skips_unmapped(resolver, user_descriptor):
    assert resolver.resolve_order(["nickname"], user_descriptor) == []


def test_order_absent_raises(resolver, user_descriptor):
    with pytest.raises(MappingError):
        resolver.resolve_order(["missing"], user_descriptor)


# ---------------------------------------------------------------------------
# Joins
# ---------------------------------------------------------------------------


def test_join_left_and_right_columns(resolver, registry, user_descriptor):
    orders = registry.resolve(Order)
    [spec] = resolver.resolve_join(user_descriptor, orders, [("id", "user_id")])

    assert spec.joined is orders
    assert spec.left.name == "users.user_id"
    assert spec.right.name == "orders.user_id"
    assert str(spec.to_clause().compile()) == "users.user_id = orders.user_id"


def test_join_with_operator(resolver, registry, user_descriptor):
    orders = registry.resolve(Order)
    [spec] = resolver.resolve_join(
        user_descriptor, orders, [JoinOn("age", "total", ">=")]
    )
    assert spec.operator is Comparing.GREATER_THAN_OR_EQUAL_TO


def test_join_unmapped_side_raises(resolver, registry, user_descriptor):
    with pytest.raises(NotAFieldError):
        resolver.resolve_join(
            user_descriptor, registry.resolve(Order), [("id", "note")]
        )


def test_join_absent_side_raises(resolver, registry, user_descriptor):
    with pytest.raises(MappingError):
        resolver.resolve_join(
            user_descriptor, registry.resolve(Order), [("uid", "user_id")]
        )


def test_join_needs_a_condition(resolver, registry, user_descriptor):
    with pytest.raises(InvalidStateError):
        resolver.resolve_join(user_descriptor, registry.resolve(Order), [])


# ---------------------------------------------------------------------------
# Update payloads
# ---------------------------------------------------------------------------


def test_resolve_values(resolver, user_descriptor):
    resolved = resolver.resolve_values(
        {"name": "bob", "nickname": "b"}, user_descriptor
    )
    assert resolved == {"user_name": ("name", "bob")}


def test_resolve_values_absent_raises(resolver, user_descriptor):
    with pytest.raises(MappingError):
        resolver.resolve_values({"nope": 1}, user_descriptor)


def test_resolve_values_stores_enum_value(resolver, user_descriptor):
    resolved = resolver.resolve_values({"age": Level.LOW}, user_descriptor)
    assert resolved == {"age": ("age", 1)}
