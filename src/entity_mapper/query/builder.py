"""
Fluent, single-entity-scoped query builder.

Example::

    users = QueryBuilder(User, executor)

    adults = (
        users.where({"age": GreaterThan(17)})
        .order_by("name")
        .get()
    )

    rows = (
        users.join(Order, ("id", "user_id"))
        .join(Item, ("id", "order_id"))
        .where({"sku": "A-1"}, target=Item)
        .get_records()
    )

Composition calls (``where``, ``order_by``, ``join``, ...) mutate the
builder and return it. A terminal call builds the statement, hands it to
the :class:`~entity_mapper.execution.StatementExecutor` and, once the
executor has returned, resets the builder so it can compose the next,
independent query. An error raised while resolving or executing leaves the
composed state in place: the caller may correct the input and call again.

The builder is not thread-safe.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pydantic import BaseModel

from ..exceptions import (
    ConfigurationError,
    InvalidStateError,
    StatementExecutionError,
)
from ..materializer import Materializer
from ..metadata import default_registry
from ..operators import Ordering
from ..resolution import ExpressionResolver
from .compiler import (
    build_delete,
    build_insert,
    build_select,
    build_update,
    label_prefix,
)
from .page import Page
from .state import QueryState

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy import Select

    from ..execution import StatementExecutor
    from ..metadata import EntityDescriptor, MetadataRegistry
    from ..operators import JoinOn
    from ..resolution import OrderTerm

T = TypeVar("T")
R = TypeVar("R")

logger = logging.getLogger(__name__)


class QueryBuilder(Generic[T]):
    """Composes and executes statements for entity type ``T``."""

    def __init__(
        self,
        entity_cls: type[T],
        executor: StatementExecutor,
        *,
        registry: MetadataRegistry | None = None,
    ) -> None:
        self._registry = registry if registry is not None else default_registry()
        self._resolver = ExpressionResolver(self._registry)
        self._executor = executor
        self._descriptor = self._registry.resolve(entity_cls)
        self._materializer: Materializer[T] = Materializer(self._descriptor)
        self._state = QueryState(self._descriptor)

    @property
    def descriptor(self) -> EntityDescriptor:
        return self._descriptor

    @property
    def state(self) -> QueryState:
        """The composition state of the current chain (read it, do not mutate it)."""
        return self._state

    # -- composition ---------------------------------------------------------

    def where(self, filter: Any, target: type[Any] | None = None) -> QueryBuilder[T]:
        """
        AND the named fields of *filter* into the predicate.

        Plain values compare with ``=`` (``None`` with ``IS NULL``); values
        wrapped in ``GreaterThan``, ``LessThan``, ... use that operator.
        Names are looked up on *filter*'s own entity type when it is one,
        otherwise on *target*, otherwise on the main entity. An entity
        instance contributes only the fields set explicitly when it was
        created (``model_fields_set``); defaulted fields are not filtered on.
        """
        terms = self._resolver.resolve_filter(filter, target, self._descriptor)
        self._state.filters.extend(terms)
        return self

    def order_by(self, *names: str, target: type[Any] | None = None) -> QueryBuilder[T]:
        """Order ascending by *names*; unmapped properties are skipped."""
        return self._add_order(names, target, descending=False)

    def order_by_desc(
        self, *names: str, target: type[Any] | None = None
    ) -> QueryBuilder[T]:
        """Order descending by *names*; unmapped properties are skipped."""
        return self._add_order(names, target, descending=True)

    def order(
        self,
        ordering: Mapping[str, Ordering | str],
        target: type[Any] | None = None,
    ) -> QueryBuilder[T]:
        """Order by each ``{property: direction}`` entry in mapping order."""
        descriptor = self._target_descriptor(target)
        terms: list[OrderTerm] = []
        for name, direction in ordering.items():
            descending = Ordering.parse(direction) is Ordering.DESCENDING
            terms.extend(
                self._resolver.resolve_order([name], descriptor, descending=descending)
            )
        self._state.orders.extend(terms)
        return self

    def join(
        self, entity_cls: type[Any], *conditions: JoinOn | tuple[str, ...]
    ) -> QueryBuilder[T]:
        """
        Inner-join *entity_cls* on *conditions*.

        The left side of every condition names a property of the previously
        joined entity (the main entity for the first join); the right side a
        property of *entity_cls*. Several conditions are ANDed into one ON.
        """
        joined = self._registry.resolve(entity_cls)
        specs = self._resolver.resolve_join(self._state.join_cursor, joined, conditions)
        self._state.add_join(specs)
        return self

    def limit(self, count: int | None) -> QueryBuilder[T]:
        if count is not None and count < 0:
            raise ValueError("limit must be >= 0")
        self._state.limit = count
        return self

    def offset(self, count: int | None) -> QueryBuilder[T]:
        if count is not None and count < 0:
            raise ValueError("offset must be >= 0")
        self._state.offset = count
        return self

    # -- reads ---------------------------------------------------------------

    def get(self) -> list[T]:
        rows = self._executor.execute_query(self._select())
        entities = self._materializer.rows_to_entities(rows)
        self._reset()
        return entities

    def first_or_default(self) -> T | None:
        rows = self._executor.execute_query(self._select().limit(1))
        entity = self._materializer.row_to_entity(rows[0]) if rows else None
        self._reset()
        return entity

    def exists(self) -> bool:
        rows = self._executor.execute_query(self._select().limit(1))
        self._reset()
        return len(rows) > 0

    def paginate(self, page: int = 1, page_size: int = 10) -> Page[T]:
        """
        Return 1-based *page* of *page_size* entities plus the total count.

        Any ``limit``/``offset`` set on the builder is replaced by the page
        window.
        """
        if page < 1:
            raise ValueError("page must be >= 1")
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        result = self._executor.paginate(self._select(), page, page_size)
        items = self._materializer.rows_to_entities(result.items)
        self._reset()
        return Page(
            items=items,
            total_count=result.total_count,
            page=page,
            page_size=page_size,
        )

    def get_records(self) -> list[dict[str, Any]]:
        """
        Rows keyed by property name instead of column name.

        Properties of joined entities are merged in join order; when two
        entities share a property name the earlier entity's value is kept.
        """
        rows = self._executor.execute_query(self._select())
        joined = [(Materializer(d), label_prefix(d)) for d in self._state.joined()]
        records = []
        for row in rows:
            record = self._materializer.row_to_record(row)
            for materializer, prefix in joined:
                joined_record = materializer.row_to_record(row, prefix=prefix)
                for name, value in joined_record.items():
                    record.setdefault(name, value)
            records.append(record)
        self._reset()
        return records

    # -- writes --------------------------------------------------------------

    def insert(self, entities: T | Iterable[T]) -> int:
        """Insert one entity or many (as one statement); returns rows inserted."""
        batch = _as_batch(entities)
        if not batch:
            self._reset()
            return 0
        rows = self._materializer.entities_to_rows(batch)
        stmt = build_insert(self._descriptor, rows)
        self._log_statement("INSERT")
        count = self._executor.execute_mutation(stmt)
        self._reset()
        return count

    def insert_returning_id(
        self, entity: T, id_type: Callable[[Any], R] = int  # type: ignore[assignment]
    ) -> R:
        """
        Insert *entity* and return its generated identity converted by *id_type*.

        When the executor reports no identity the row has still been written,
        so the builder resets before ``StatementExecutionError`` is raised;
        calling again inserts another row rather than retrying this one.
        """
        if self._descriptor.identity is None:
            raise ConfigurationError(
                f"'{self._descriptor.entity_name}' has no AutoIncrement column "
                "to return",
                entity_name=self._descriptor.entity_name,
            )
        row = self._materializer.entity_to_row(entity)
        stmt = build_insert(self._descriptor, [row])
        self._log_statement("INSERT")
        identity = self._executor.execute_scalar_insert(stmt)
        self._reset()
        if identity is None:
            raise StatementExecutionError(
                f"Insert into '{self._descriptor.qualified_table_name}' returned "
                "no generated identity"
            )
        return id_type(identity)

    def update(self, values: Any) -> int:
        """
        Set the named fields of *values* on every row matching the filters.

        Unmapped and auto-generated properties are not written.
        """
        self._check_bulk_mutation("update")
        resolved = self._resolver.resolve_values(values, self._descriptor)
        assignments: dict[str, Any] = {}
        for column_name, (property_name, value) in resolved.items():
            binding = self._descriptor.binding_for_column(column_name)
            if binding is not None and binding.is_auto_generated:
                logger.debug(
                    "Not updating %s.%s: column is auto-generated",
                    self._descriptor.entity_name,
                    property_name,
                )
                continue
            assignments[column_name] = value
        if not assignments:
            raise InvalidStateError(
                f"Update of '{self._descriptor.entity_name}' sets no writable column"
            )
        stmt = build_update(self._state, assignments)
        self._log_statement("UPDATE")
        count = self._executor.execute_mutation(stmt)
        self._reset()
        return count

    def delete(self) -> int:
        """Delete every row matching the filters; returns rows deleted."""
        self._check_bulk_mutation("delete")
        stmt = build_delete(self._state)
        self._log_statement("DELETE")
        count = self._executor.execute_mutation(stmt)
        self._reset()
        return count

    # -- internals -----------------------------------------------------------

    def _target_descriptor(self, target: type[Any] | None) -> EntityDescriptor:
        if target is None:
            return self._descriptor
        return self._registry.resolve(target)

    def _add_order(
        self, names: Iterable[str], target: type[Any] | None, *, descending: bool
    ) -> QueryBuilder[T]:
        terms = self._resolver.resolve_order(
            names, self._target_descriptor(target), descending=descending
        )
        self._state.orders.extend(terms)
        return self

    def _select(self) -> Select[Any]:
        self._state.check_participants()
        self._log_statement("SELECT")
        return build_select(self._state)

    def _check_bulk_mutation(self, kind: str) -> None:
        state = self._state
        if state.orders:
            raise InvalidStateError(
                f"Cannot {kind} '{self._descriptor.entity_name}' with an ordering set"
            )
        if state.joins:
            raise InvalidStateError(
                f"Cannot {kind} '{self._descriptor.entity_name}' with joins set"
            )
        for term in state.filters:
            if term.column.entity_type is not self._descriptor.entity_type:
                raise InvalidStateError(
                    f"Cannot {kind} '{self._descriptor.entity_name}' filtered on "
                    f"'{term.column}'"
                )

    def _log_statement(self, kind: str) -> None:
        logger.debug(
            "Building %s on %s (%d filters, %d joins)",
            kind,
            self._descriptor.qualified_table_name,
            len(self._state.filters),
            len(self._state.joins),
        )

    def _reset(self) -> None:
        if not self._state.is_fresh:
            logger.debug("Resetting query state for %s", self._descriptor.entity_name)
        self._state = self._state.reset()


def _as_batch(entities: Any) -> list[Any]:
    # pydantic models are iterable over their fields; treat them as one entity
    if isinstance(entities, BaseModel) or not isinstance(entities, Iterable):
        return [entities]
    if isinstance(entities, str | bytes | Mapping):
        return [entities]
    return list(entities)
