"""
SQLAlchemy implementation of the execution collaborator.

Supports two usage patterns:

1. **Caller-managed transactions** (default)::

       with engine.begin() as conn:
           executor = SQLAlchemyExecutor(conn)
           QueryBuilder(User, executor).where({"name": "ada"}).delete()

   Statements run inside whatever transaction the caller holds on the
   connection; nothing is committed by the executor.

2. **Autocommit**::

       executor = SQLAlchemyExecutor(conn, autocommit=True)
       with executor.transaction():
           ...  # grouped statements, committed together

   Each statement is committed as soon as it has run, except inside
   ``transaction()`` where the block commits or rolls back as a unit.
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import StatementExecutionError, TransactionError
from .ports import PageResult

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence

    from sqlalchemy import Delete, Insert, Select, Update
    from sqlalchemy.engine import Connection, CursorResult
    from sqlalchemy.sql.base import Executable

logger = logging.getLogger(__name__)


class SQLAlchemyExecutor:
    """Executes builder statements on a ``sqlalchemy.engine.Connection``."""

    def __init__(
        self,
        connection: Connection,
        *,
        execution_options: Mapping[str, Any] | None = None,
        autocommit: bool = False,
    ) -> None:
        self._connection = connection
        self._execution_options = dict(execution_options or {})
        self._autocommit = autocommit
        self._transaction_depth = 0

    @property
    def connection(self) -> Connection:
        return self._connection

    @property
    def in_transaction_block(self) -> bool:
        return self._transaction_depth > 0

    # -- StatementExecutor ---------------------------------------------------

    def execute_query(self, statement: Select[Any]) -> Sequence[Mapping[str, Any]]:
        result = self._execute(statement)
        rows = list(result.mappings())
        self._commit_if_autocommit()
        return rows

    def execute_scalar_insert(self, statement: Insert) -> Any:
        result = self._execute(statement)
        identity: Any = None
        primary_key = result.inserted_primary_key
        if primary_key is not None and len(primary_key) > 0:
            identity = primary_key[0]
        if identity is None:
            identity = result.lastrowid
        self._commit_if_autocommit()
        return identity

    def execute_mutation(self, statement: Insert | Update | Delete) -> int:
        result = self._execute(statement)
        count = result.rowcount
        self._commit_if_autocommit()
        return count

    def paginate(
        self, statement: Select[Any], page: int, page_size: int
    ) -> PageResult:
        if page < 1:
            raise ValueError("page must be >= 1")
        if page_size < 1:
            raise ValueError("page_size must be >= 1")

        unordered = statement.order_by(None).limit(None).offset(None)
        count_stmt = select(func.count()).select_from(unordered.subquery())
        total = self._execute(count_stmt).scalar_one()

        page_stmt = statement.limit(page_size).offset((page - 1) * page_size)
        rows = list(self._execute(page_stmt).mappings())
        self._commit_if_autocommit()
        return PageResult(items=rows, total_count=int(total))

    # -- transactions --------------------------------------------------------

    @contextlib.contextmanager
    def transaction(self) -> Iterator[Connection]:
        """
        Group statements into one transaction (a savepoint when nested or
        when the connection already has a transaction open).
        """
        conn = self._connection
        try:
            if conn.in_transaction():
                trans = conn.begin_nested()
            else:
                trans = conn.begin()
        except SQLAlchemyError as e:
            raise TransactionError(f"Failed to begin transaction: {e}") from e

        self._transaction_depth += 1
        try:
            with trans:
                yield conn
        except SQLAlchemyError as e:
            raise TransactionError(f"Transaction failed: {e}") from e
        finally:
            self._transaction_depth -= 1

    # -- internals -----------------------------------------------------------

    def _execute(self, statement: Executable) -> CursorResult[Any]:
        logger.debug("Executing %s", type(statement).__name__)
        try:
            return self._connection.execute(
                statement, execution_options=self._execution_options or None
            )
        except SQLAlchemyError as e:
            logger.exception("Statement failed: %s", type(statement).__name__)
            raise StatementExecutionError(f"Failed to execute statement: {e}") from e

    def _commit_if_autocommit(self) -> None:
        if not self._autocommit or self.in_transaction_block:
            return
        if self._connection.in_transaction():
            try:
                self._connection.commit()
            except SQLAlchemyError as e:
                raise TransactionError(f"Failed to commit statement: {e}") from e
