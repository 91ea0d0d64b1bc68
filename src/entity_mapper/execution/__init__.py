from .ports import PageResult, StatementExecutor
from .sqlalchemy import SQLAlchemyExecutor

__all__ = ["PageResult", "SQLAlchemyExecutor", "StatementExecutor"]
