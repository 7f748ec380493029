"""
SQLite database adapter implementation.
"""

from __future__ import annotations

import sqlite3
from typing import Any

from ..dialects.sqlite import SQLiteDialect
from .base import DBAPIAdapter
from .config import ConnectionConfig
from .errors import AdapterConnectionError


def _load_driver():
    return sqlite3


class SQLiteAdapter(DBAPIAdapter):
    """
    Adapter wrapping the Python stdlib sqlite3 module.

    The connection runs with ``isolation_level=None`` so transactions are
    only ever opened by :meth:`begin`.
    """

    label = "sqlite"

    def __init__(self, slow_query_ms: int | None = None) -> None:
        super().__init__(slow_query_ms)
        self.dialect = SQLiteDialect()

    def _load_driver(self) -> Any:
        return _load_driver()

    def _connect(self, driver: Any, config: ConnectionConfig) -> Any:
        path = self._normalize_path(config.url)
        timeout = config.timeout if config.timeout is not None else 5.0
        try:
            connection = driver.connect(
                path,
                isolation_level=None,
                timeout=timeout,
                check_same_thread=False,
            )
        except driver.Error as exc:
            raise AdapterConnectionError(f"Failed to open SQLite database {path!r}.") from exc
        connection.row_factory = driver.Row
        connection.execute("PRAGMA foreign_keys = ON")
        self.logger.debug("Opened SQLite database %s", path)
        return connection

    def _apply_isolation_level(self, level: str) -> None:
        self.logger.debug("SQLite ignores isolation level %s", level)

    def commit(self) -> None:
        connection = self._ensure_connection()
        try:
            if connection.in_transaction:
                self.execute("COMMIT")
        finally:
            self._in_transaction = False

    def rollback(self) -> None:
        connection = self._ensure_connection()
        try:
            if connection.in_transaction:
                self.execute("ROLLBACK")
        finally:
            self._in_transaction = False

    @staticmethod
    def _normalize_path(url: str) -> str:
        if url in ("sqlite:///:memory:", "sqlite://", ":memory:"):
            return ":memory:"
        prefix = "sqlite:///"
        if url.startswith(prefix):
            return url[len(prefix) :]
        return url
