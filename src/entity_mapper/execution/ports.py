"""StatementExecutor — the execution collaborator consumed by the query builder."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from sqlalchemy import Delete, Insert, Select, Update


@dataclass(frozen=True)
class PageResult:
    """One page of raw rows plus the row count of the unpaginated query."""

    items: Sequence[Mapping[str, Any]] = field(default_factory=tuple)
    total_count: int = 0


@runtime_checkable
class StatementExecutor(Protocol):
    """
    Executes SQLAlchemy statements built by the query builder.

    Implementations own transaction and timeout behaviour; calls block
    until the backend answers and failures surface immediately.
    """

    def execute_query(self, statement: Select[Any]) -> Sequence[Mapping[str, Any]]:
        """Run a select and return its rows as mappings keyed by column label."""
        ...

    def execute_scalar_insert(self, statement: Insert) -> Any:
        """Run a single-row insert and return the generated identity."""
        ...

    def execute_mutation(self, statement: Insert | Update | Delete) -> int:
        """Run an insert/update/delete and return the affected row count."""
        ...

    def paginate(
        self, statement: Select[Any], page: int, page_size: int
    ) -> PageResult:
        """Return rows of 1-based *page* plus the total row count."""
        ...
