"""
PostgreSQL database adapter implementation.
"""

from __future__ import annotations

from typing import Any

from ..dialects.postgres import PostgresDialect
from .base import DBAPIAdapter
from .config import ConnectionConfig
from .errors import AdapterConfigurationError, AdapterConnectionError, AdapterExecutionError


def _load_driver():
    try:
        import psycopg

        return psycopg
    except ImportError:
        return None


class PostgresAdapter(DBAPIAdapter):
    """
    Adapter wrapping the psycopg PostgreSQL driver.
    """

    label = "postgres"
    validate_placeholders = True

    def __init__(self, slow_query_ms: int | None = None) -> None:
        super().__init__(slow_query_ms)
        self.dialect = PostgresDialect()

    def _load_driver(self) -> Any:
        driver = _load_driver()
        if driver is None:
            raise AdapterConfigurationError("psycopg is required to use PostgresAdapter.")
        return driver

    def _connect(self, driver: Any, config: ConnectionConfig) -> Any:
        options = dict(config.options or {})
        if config.timeout and "connect_timeout" not in options:
            options["connect_timeout"] = int(config.timeout)

        self.logger.info("Connecting to PostgreSQL %s", config.descriptive_label())
        try:
            connection = driver.connect(config.url, **options)
        except Exception as exc:
            raise AdapterConnectionError("Failed to connect to PostgreSQL.") from exc
        connection.autocommit = True
        return connection

    def _apply_isolation_level(self, level: str) -> None:
        self.execute(f"SET SESSION CHARACTERISTICS AS TRANSACTION ISOLATION LEVEL {level.upper()}")

    def last_insert_id(self, cursor: Any) -> Any:
        row = cursor.fetchone()
        if not row:
            raise AdapterExecutionError("No RETURNING data available for last insert id.")
        return row[0]
