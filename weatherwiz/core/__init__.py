"""
Core cross-filtering layer: predicates, selections, clients, the coordinator
and the tabular store they query
"""

from .client import BaseClient, ClientState
from .client_registry import ClientRegistry
from .coordinator import Coordinator
from .predicate import TRUE, And, Between, CombineMode, Eq, IsIn, Or, Predicate
from .query import Aggregate, Bin, QueryRequest, QueryResult, QuerySpec
from .selection import Clause, Selection
from .store import TabularStore

__all__ = [
    "BaseClient",
    "ClientState",
    "ClientRegistry",
    "Coordinator",
    "TRUE",
    "And",
    "Between",
    "CombineMode",
    "Eq",
    "IsIn",
    "Or",
    "Predicate",
    "Aggregate",
    "Bin",
    "QueryRequest",
    "QueryResult",
    "QuerySpec",
    "Clause",
    "Selection",
    "TabularStore",
]
