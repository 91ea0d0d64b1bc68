from .builder import QueryBuilder
from .page import Page
from .state import QueryState

__all__ = ["Page", "QueryBuilder", "QueryState"]
