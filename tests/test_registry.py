"""
Tests for the metadata registry and entity descriptors.

Covers:
- Descriptor extraction (ordering, column names, auto-generated flags)
- Idempotent, type-keyed caching with first-registration-wins
- ConfigurationError for unusable entity types
- Case-insensitive property lookup, absent vs. unmapped properties
- The generated SQLAlchemy table
"""

from __future__ import annotations

import logging
import threading
from typing import Annotated

import entities
import pytest
from entities import (
    Clashing,
    Flag,
    Invoice,
    NothingBound,
    PlainClass,
    Tag,
    Unmarked,
    User,
)
from pydantic import BaseModel
from sqlalchemy import Boolean, Integer, String

from entity_mapper import (
    Column,
    ConfigurationError,
    EntityDescriptor,
    FieldBinding,
    MappingError,
    MetadataRegistry,
    NotAFieldError,
    default_registry,
    table,
)
from entity_mapper.metadata import build_descriptor

# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def test_resolve_reads_bindings_in_declaration_order(registry):
    descriptor = registry.resolve(User)

    assert descriptor.table_name == "users"
    assert descriptor.columns == ("user_id", "user_name", "age", "is_active")
    assert [b.property_name for b in descriptor.fields] == [
        "id",
        "name",
        "age",
        "active",
    ]


def test_auto_generated_is_read_but_not_written(registry):
    descriptor = registry.resolve(User)

    assert descriptor.identity == FieldBinding("id", "user_id", True)
    assert "user_id" in descriptor.columns
    assert [b.column_name for b in descriptor.writable_fields] == [
        "user_name",
        "age",
        "is_active",
    ]


def test_unmapped_property_is_known_but_unbound(registry):
    descriptor = registry.resolve(User)

    assert "nickname" in descriptor.properties
    assert descriptor.binding_for("nickname") is None


def test_schema_qualified_table(registry):
    descriptor = registry.resolve(Invoice)

    assert descriptor.table_name == "invoices"
    assert descriptor.schema == "sales"
    assert descriptor.qualified_table_name == "sales.invoices"
    assert descriptor.qualify(descriptor.fields[1]).name == "sales.invoices.number"


def test_entity_without_identity(registry):
    assert registry.resolve(Tag).identity is None


# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------


def test_resolve_is_idempotent(registry):
    first = registry.resolve(User)
    second = registry.resolve(User)

    assert first is second
    assert first.table_name == second.table_name
    assert first.columns == second.columns
    assert len(registry) == 1
    assert User in registry


def test_cache_is_keyed_by_type_not_name(registry):
    @table("other_users")
    class User(BaseModel):
        name: Annotated[str, Column("n")] = ""

    assert registry.resolve(entities.User).table_name == "users"
    assert registry.resolve(User).table_name == "other_users"
    assert len(registry) == 2


def test_first_registration_wins(registry, caplog):
    original = registry.resolve(User)
    replacement = EntityDescriptor(User, "people", (FieldBinding("name", "name"),))

    with caplog.at_level(logging.WARNING, logger="entity_mapper.metadata.registry"):
        kept = registry.register(User, replacement)

    assert kept is original
    assert registry.resolve(User).table_name == "users"
    assert "Discarding registration for User" in caplog.text


def test_register_explicit_descriptor(registry):
    descriptor = EntityDescriptor(Tag, "labels", (FieldBinding("name", "label"),))

    assert registry.register(Tag, descriptor) is descriptor
    assert registry.resolve(Tag).table_name == "labels"


def test_register_rejects_mismatched_type(registry):
    descriptor = EntityDescriptor(Tag, "labels", (FieldBinding("name", "label"),))

    with pytest.raises(ConfigurationError):
        registry.register(User, descriptor)


def test_clear_empties_cache(registry):
    registry.resolve(User)
    registry.clear()
    assert len(registry) == 0


def test_concurrent_first_use_yields_one_descriptor(registry):
    results: list[EntityDescriptor] = []
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        results.append(registry.resolve(Flag))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 8
    assert all(r is results[0] for r in results)


def test_default_registry_is_shared():
    assert default_registry() is default_registry()
    assert isinstance(default_registry(), MetadataRegistry)


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("entity", "reason"),
    [
        (Unmarked, "missing @table marker"),
        (PlainClass, "must be pydantic models"),
        (NothingBound, "no property carries a Column marker"),
    ],
)
def test_unusable_entities_raise_configuration_error(registry, entity, reason):
    with pytest.raises(ConfigurationError, match=reason) as exc_info:
        registry.resolve(entity)

    assert exc_info.value.entity_name == entity.__name__
    assert entity not in registry


def test_duplicate_column_names_rejected():
    with pytest.raises(ConfigurationError, match="bound more than once"):
        build_descriptor(Clashing)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def test_lookup_is_case_insensitive(registry):
    descriptor = registry.resolve(User)

    assert descriptor.lookup("NAME").column_name == "user_name"
    assert descriptor.lookup("Active").column_name == "is_active"


def test_lookup_unmapped_returns_none(registry):
    assert registry.resolve(User).lookup("nickname") is None


def test_lookup_absent_raises_mapping_error_with_suggestions(registry):
    with pytest.raises(MappingError) as exc_info:
        registry.resolve(User).lookup("nmae")

    err = exc_info.value
    assert err.entity_name == "User"
    assert err.property_name == "nmae"
    assert "name" in err.suggestions
    assert "Did you mean: name?" in str(err)


def test_require_unmapped_raises_not_a_field(registry):
    with pytest.raises(NotAFieldError, match="not bound to a column"):
        registry.resolve(User).require("nickname")


# ---------------------------------------------------------------------------
# SQLAlchemy table
# ---------------------------------------------------------------------------


def test_table_columns_and_types(registry):
    sa_table = registry.resolve(User).table

    assert sa_table.name == "users"
    assert list(sa_table.c.keys()) == ["user_id", "user_name", "age", "is_active"]
    assert sa_table.c.user_id.primary_key
    assert isinstance(sa_table.c.user_id.type, Integer)
    assert isinstance(sa_table.c.user_name.type, String)
    assert isinstance(sa_table.c.is_active.type, Boolean)


def test_nullable_boolean_binding(registry):
    enabled = registry.resolve(Flag).binding_for("enabled")

    assert enabled.is_boolean
    assert enabled.is_nullable
