"""
Translate a :class:`~entity_mapper.query.state.QueryState` into SQLAlchemy
Core statements.

Select list
-----------
The main entity's columns are selected under their bare names; columns of
joined entities are labelled ``"<table>.<column>"`` so that rows can be
materialized per entity without name clashes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, delete, insert, select, update

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from sqlalchemy import Delete, Insert, Select, Update
    from sqlalchemy.sql.elements import ColumnElement
    from sqlalchemy.sql.selectable import FromClause

    from ..metadata import EntityDescriptor
    from ..resolution import FilterTerm, OrderTerm
    from .state import QueryState


def column_label(descriptor: EntityDescriptor, column_name: str) -> str:
    return f"{descriptor.qualified_table_name}.{column_name}"


def label_prefix(descriptor: EntityDescriptor) -> str:
    return f"{descriptor.qualified_table_name}."


# ---------------------------------------------------------------------------
# Select
# ---------------------------------------------------------------------------


def build_select(state: QueryState) -> Select[Any]:
    """SELECT over the main entity and every joined entity."""
    main = state.main
    columns: list[ColumnElement[Any]] = [main.table.c[name] for name in main.columns]
    for joined in state.joined():
        columns.extend(
            joined.table.c[name].label(column_label(joined, name))
            for name in joined.columns
        )

    stmt = select(*columns).select_from(_build_from(state))
    stmt = _apply_filters(stmt, state.filters)
    stmt = _apply_order_by(stmt, state.orders)
    return _apply_limit_offset(stmt, state.limit, state.offset)


def _build_from(state: QueryState) -> FromClause:
    from_clause: FromClause = state.main.table
    for joined, specs in state.join_groups():
        on_clause = and_(*(spec.to_clause() for spec in specs))
        from_clause = from_clause.join(joined.table, on_clause)
    return from_clause


def _where_clause(filters: Sequence[FilterTerm]) -> ColumnElement[bool] | None:
    if not filters:
        return None
    return and_(*(term.to_clause() for term in filters))


def _apply_filters(stmt: Select[Any], filters: Sequence[FilterTerm]) -> Select[Any]:
    clause = _where_clause(filters)
    return stmt if clause is None else stmt.where(clause)


def _apply_order_by(stmt: Select[Any], orders: Sequence[OrderTerm]) -> Select[Any]:
    if not orders:
        return stmt
    return stmt.order_by(*(term.to_clause() for term in orders))


def _apply_limit_offset(
    stmt: Select[Any], limit: int | None, offset: int | None
) -> Select[Any]:
    if limit is not None:
        stmt = stmt.limit(limit)
    if offset is not None:
        stmt = stmt.offset(offset)
    return stmt


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


def build_insert(
    descriptor: EntityDescriptor, rows: Sequence[Sequence[tuple[str, Any]]]
) -> Insert:
    """
    INSERT of one or more rows produced by ``Materializer.entity_to_row``.

    Multiple rows become a single multi-VALUES statement.
    """
    if len(rows) == 1:
        return insert(descriptor.table).values(dict(rows[0]))
    return insert(descriptor.table).values([dict(row) for row in rows])


def build_update(state: QueryState, values: Mapping[str, Any]) -> Update:
    """UPDATE of the main table, restricted by the accumulated filters."""
    stmt = update(state.main.table).values(dict(values))
    clause = _where_clause(state.filters)
    return stmt if clause is None else stmt.where(clause)


def build_delete(state: QueryState) -> Delete:
    stmt = delete(state.main.table)
    clause = _where_clause(state.filters)
    return stmt if clause is None else stmt.where(clause)
