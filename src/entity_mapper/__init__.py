"""
entity-mapper — metadata-driven query building and row materialization
for pydantic entities over SQLAlchemy Core.
"""

from .database import Database
from .exceptions import (
    ComparisonTypeError,
    ConfigurationError,
    EntityMapperError,
    InvalidStateError,
    MappingError,
    MissingColumnError,
    NotAFieldError,
    StatementExecutionError,
    TransactionError,
)
from .execution import PageResult, SQLAlchemyExecutor, StatementExecutor
from .markers import AutoIncrement, Column, Table, table
from .materializer import Materializer
from .metadata import (
    EntityDescriptor,
    FieldBinding,
    MetadataRegistry,
    QualifiedColumn,
    default_registry,
)
from .operators import (
    Comparing,
    Comparison,
    EqualTo,
    GreaterThan,
    GreaterThanOrEqualTo,
    JoinOn,
    LessThan,
    LessThanOrEqualTo,
    Ordering,
)
from .query import Page, QueryBuilder

__version__ = "0.1.0"

__all__ = [
    "AutoIncrement",
    "Column",
    "Comparing",
    "Comparison",
    "ComparisonTypeError",
    "ConfigurationError",
    "Database",
    "EntityDescriptor",
    "EntityMapperError",
    "EqualTo",
    "FieldBinding",
    "GreaterThan",
    "GreaterThanOrEqualTo",
    "InvalidStateError",
    "JoinOn",
    "LessThan",
    "LessThanOrEqualTo",
    "MappingError",
    "Materializer",
    "MetadataRegistry",
    "MissingColumnError",
    "NotAFieldError",
    "Ordering",
    "Page",
    "PageResult",
    "QualifiedColumn",
    "QueryBuilder",
    "SQLAlchemyExecutor",
    "StatementExecutionError",
    "StatementExecutor",
    "Table",
    "TransactionError",
    "default_registry",
    "table",
]
