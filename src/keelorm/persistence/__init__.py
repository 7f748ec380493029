"""
Persistence layer: sessions, unit of work, flush planning and the backing store.
"""

from .flush import FlushOperation, FlushPlan, FlushPlanner, OperationKind
from .identity_map import IdentityMap
from .session import Session
from .store import BackingStore, StatementResult
from .unit_of_work import UnitOfWork, UnitOfWorkState

__all__ = [
    "BackingStore",
    "FlushOperation",
    "FlushPlan",
    "FlushPlanner",
    "IdentityMap",
    "OperationKind",
    "Session",
    "StatementResult",
    "UnitOfWork",
    "UnitOfWorkState",
]
