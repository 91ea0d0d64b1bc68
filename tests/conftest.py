"""Shared fixtures: a recording executor and in-memory SQLite databases."""

from __future__ import annotations

import pytest
from entities import Flag, Item, Order, User
from fakes import RecordingExecutor

from entity_mapper import Database, MetadataRegistry, QueryBuilder


@pytest.fixture
def registry() -> MetadataRegistry:
    return MetadataRegistry()


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def users(
    executor: RecordingExecutor, registry: MetadataRegistry
) -> QueryBuilder[User]:
    return QueryBuilder(User, executor, registry=registry)


@pytest.fixture
def sqlite_db(registry: MetadataRegistry):
    database = Database.from_url("sqlite://", registry=registry)
    for entity in (User, Order, Item, Flag):
        registry.resolve(entity).table.create(database.connection)
    database.connection.commit()
    yield database
    database.close()
