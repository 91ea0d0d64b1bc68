"""
Database — connection plumbing around the query builder.

Supports two usage patterns:

1. **Caller-managed connections**::

       with engine.begin() as conn:
           db = Database(conn)
           db.query(User).where({"name": "ada"}).delete()

   The caller owns the connection and its transaction; nothing is
   committed or closed by ``Database``.

2. **Self-managed connections**::

       with Database(engine) as db:       # or Database.from_url("sqlite://")
           db.query(User).insert(User(name="ada"))
           with db.begin():
               ...  # grouped statements, committed together

   ``Database`` opens its own connection and closes it on ``close()``.
   Outside ``begin()`` every statement is committed as soon as it ran.
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from .exceptions import TransactionError
from .execution import SQLAlchemyExecutor
from .metadata import default_registry
from .query import QueryBuilder

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping
    from types import TracebackType

    from .metadata import MetadataRegistry

T = TypeVar("T")

logger = logging.getLogger(__name__)


class Database:
    """Hands out query builders bound to one connection."""

    def __init__(
        self,
        bind: Engine | Connection,
        *,
        registry: MetadataRegistry | None = None,
        execution_options: Mapping[str, Any] | None = None,
    ) -> None:
        if isinstance(bind, Engine):
            try:
                connection = bind.connect()
            except SQLAlchemyError as e:
                raise TransactionError(f"Failed to open connection: {e}") from e
            self._owns_connection = True
        elif isinstance(bind, Connection):
            connection = bind
            self._owns_connection = False
        else:
            raise TypeError(
                f"Database expects an Engine or a Connection, got {type(bind).__name__}"
            )

        self._engine: Engine | None = None
        self._connection: Connection | None = connection
        self._registry = registry if registry is not None else default_registry()
        self._executor = SQLAlchemyExecutor(
            connection,
            execution_options=execution_options,
            autocommit=self._owns_connection,
        )

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        registry: MetadataRegistry | None = None,
        execution_options: Mapping[str, Any] | None = None,
        **engine_kwargs: Any,
    ) -> Database:
        """Create an engine from *url* and a self-managed ``Database`` over it."""
        engine = create_engine(url, **engine_kwargs)
        db = cls(engine, registry=registry, execution_options=execution_options)
        db._engine = engine
        return db

    @property
    def owns_connection(self) -> bool:
        return self._owns_connection

    @property
    def closed(self) -> bool:
        return self._connection is None

    @property
    def connection(self) -> Connection:
        if self._connection is None:
            raise TransactionError("Database is closed")
        return self._connection

    @property
    def executor(self) -> SQLAlchemyExecutor:
        self._check_open()
        return self._executor

    @property
    def registry(self) -> MetadataRegistry:
        return self._registry

    def query(self, entity_cls: type[T]) -> QueryBuilder[T]:
        """A fresh builder for *entity_cls* on this database's connection."""
        self._check_open()
        return QueryBuilder(entity_cls, self._executor, registry=self._registry)

    @contextlib.contextmanager
    def begin(self) -> Iterator[Database]:
        """Run the block in one transaction; commits on success, rolls back on error."""
        self._check_open()
        with self._executor.transaction():
            yield self

    def close(self) -> None:
        """Close a self-managed connection (and engine). Borrowed ones are left open."""
        if self._connection is None:
            return
        connection, self._connection = self._connection, None
        if not self._owns_connection:
            return
        try:
            connection.close()
        except SQLAlchemyError as e:
            raise TransactionError(f"Failed to close connection: {e}") from e
        finally:
            if self._engine is not None:
                self._engine.dispose()
                self._engine = None
        logger.debug("Closed self-managed connection")

    def __enter__(self) -> Database:
        self._check_open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def _check_open(self) -> None:
        if self._connection is None:
            raise TransactionError("Database is closed")
