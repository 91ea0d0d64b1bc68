"""Transient composition state of one query chain."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..exceptions import InvalidStateError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from ..metadata import EntityDescriptor
    from ..resolution import FilterTerm, JoinSpec, OrderTerm


@dataclass
class QueryState:
    """
    Filters, ordering and the join chain accumulated by a builder.

    ``cursor`` is the entity the next join chains off: the main entity
    until the first join, then the most recently joined entity.
    """

    main: EntityDescriptor
    filters: list[FilterTerm] = field(default_factory=list)
    orders: list[OrderTerm] = field(default_factory=list)
    joins: list[JoinSpec] = field(default_factory=list)
    cursor: EntityDescriptor | None = None
    limit: int | None = None
    offset: int | None = None

    def __post_init__(self) -> None:
        if self.cursor is None:
            self.cursor = self.main

    @property
    def is_fresh(self) -> bool:
        return not (
            self.filters
            or self.orders
            or self.joins
            or self.limit is not None
            or self.offset is not None
        )

    @property
    def join_cursor(self) -> EntityDescriptor:
        return self.cursor or self.main

    # -- participants --------------------------------------------------------

    def joined(self) -> list[EntityDescriptor]:
        """Joined entities in join order, each once."""
        seen: list[EntityDescriptor] = []
        for spec in self.joins:
            if not any(d.entity_type is spec.joined.entity_type for d in seen):
                seen.append(spec.joined)
        return seen

    def participants(self) -> list[EntityDescriptor]:
        return [self.main, *self.joined()]

    def participates(self, entity_type: type[Any]) -> bool:
        return any(d.entity_type is entity_type for d in self.participants())

    def join_groups(self) -> Iterator[tuple[EntityDescriptor, list[JoinSpec]]]:
        """Yield ``(joined, specs)``; consecutive specs on one entity share a group."""
        group: list[JoinSpec] = []
        for spec in self.joins:
            if group and group[0].joined.entity_type is not spec.joined.entity_type:
                yield group[0].joined, group
                group = []
            group.append(spec)
        if group:
            yield group[0].joined, group

    # -- mutation ------------------------------------------------------------

    def add_join(self, specs: Iterable[JoinSpec]) -> None:
        specs = list(specs)
        if not specs:
            return
        joined = specs[0].joined
        if self.participates(joined.entity_type):
            raise InvalidStateError(
                f"'{joined.entity_name}' already takes part in this query; "
                "an entity can be joined only once"
            )
        self.joins.extend(specs)
        self.cursor = joined

    def check_participants(self) -> None:
        """Every filtered or ordered column must belong to a participating entity."""
        terms: list[FilterTerm | OrderTerm] = [*self.filters, *self.orders]
        for term in terms:
            if not self.participates(term.column.entity_type):
                raise InvalidStateError(
                    f"Column '{term.column}' belongs to "
                    f"'{term.column.descriptor.entity_name}', which is neither the "
                    f"queried entity '{self.main.entity_name}' nor joined"
                )

    def reset(self) -> QueryState:
        return QueryState(self.main)
