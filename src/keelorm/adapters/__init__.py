"""
Database adapter interfaces and implementations.
"""

from .base import DatabaseAdapter, DBAPIAdapter
from .config import ConnectionConfig, DSNConfig, parse_dsn
from .errors import (
    AdapterConfigurationError,
    AdapterConnectionError,
    AdapterError,
    AdapterExecutionError,
    AdapterTransactionError,
)
from .mysql import MySQLAdapter
from .postgres import PostgresAdapter
from .sqlite import SQLiteAdapter

__all__ = [
    "ConnectionConfig",
    "DSNConfig",
    "DatabaseAdapter",
    "DBAPIAdapter",
    "parse_dsn",
    "AdapterError",
    "AdapterConfigurationError",
    "AdapterConnectionError",
    "AdapterExecutionError",
    "AdapterTransactionError",
    "SQLiteAdapter",
    "PostgresAdapter",
    "MySQLAdapter",
]
