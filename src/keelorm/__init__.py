"""
KeelORM public package initialization.

A small persistence runtime: a session-scoped identity map and unit of
work, raw-key and lazy many-to-one associations, composite keys and
dependency-ordered flushing.
"""

from .adapters import ConnectionConfig, MySQLAdapter, PostgresAdapter, SQLiteAdapter  # noqa: F401
from .core import (  # noqa: F401
    AutoField,
    DateField,
    EntityKey,
    EntityState,
    IdReference,
    IntegerField,
    InvalidKeyError,
    LazyProxy,
    ManyToOne,
    Model,
    StringField,
)
from .errors import (  # noqa: F401
    DanglingReferenceError,
    FlushCycleError,
    IdentityConflictError,
    ModelConfigurationError,
    PersistenceError,
    SessionClosedError,
    StaleReferenceError,
    StoreConstraintError,
    TransientReferenceError,
)
from .persistence import Session  # noqa: F401
from .query import Q, QuerySet  # noqa: F401
from .schema import SchemaBuilder  # noqa: F401

__all__ = [
    "Model",
    "AutoField",
    "DateField",
    "IntegerField",
    "StringField",
    "IdReference",
    "ManyToOne",
    "EntityKey",
    "EntityState",
    "LazyProxy",
    "Session",
    "QuerySet",
    "Q",
    "SchemaBuilder",
    "ConnectionConfig",
    "SQLiteAdapter",
    "PostgresAdapter",
    "MySQLAdapter",
    "PersistenceError",
    "TransientReferenceError",
    "DanglingReferenceError",
    "StoreConstraintError",
    "FlushCycleError",
    "StaleReferenceError",
    "SessionClosedError",
    "IdentityConflictError",
    "InvalidKeyError",
    "ModelConfigurationError",
]
