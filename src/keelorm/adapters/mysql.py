"""
MySQL database adapter implementation.
"""

from __future__ import annotations

from typing import Any

from ..dialects.mysql import MySQLDialect
from .base import DBAPIAdapter
from .config import ConnectionConfig
from .errors import AdapterConfigurationError, AdapterConnectionError


def _load_driver():
    try:
        import pymysql  # type: ignore[import-untyped]

        return pymysql
    except ImportError:
        return None


class MySQLAdapter(DBAPIAdapter):
    """
    Adapter wrapping the PyMySQL driver.
    """

    label = "mysql"
    begin_statement = "START TRANSACTION"
    validate_placeholders = True

    def __init__(self, slow_query_ms: int | None = None) -> None:
        super().__init__(slow_query_ms)
        self.dialect = MySQLDialect()

    def _load_driver(self) -> Any:
        driver = _load_driver()
        if driver is None:
            raise AdapterConfigurationError("PyMySQL is required to use MySQLAdapter.")
        return driver

    def _connect(self, driver: Any, config: ConnectionConfig) -> Any:
        if not config.dsn:
            raise AdapterConfigurationError(
                "ConnectionConfig must be built from a DSN for MySQL connections."
            )
        options = dict(config.options or {})
        if config.timeout and "connect_timeout" not in options:
            options["connect_timeout"] = int(config.timeout)

        dsn = config.dsn
        connect_kwargs = {
            "host": dsn.host or "localhost",
            "user": dsn.username,
            "password": dsn.password,
            "database": dsn.database,
            "autocommit": True,
            **options,
        }
        if dsn.port:
            connect_kwargs["port"] = dsn.port

        self.logger.info("Connecting to MySQL %s", config.descriptive_label())
        try:
            return driver.connect(**connect_kwargs)
        except Exception as exc:
            raise AdapterConnectionError("Failed to connect to MySQL.") from exc

    def _apply_isolation_level(self, level: str) -> None:
        self.execute(f"SET SESSION TRANSACTION ISOLATION LEVEL {level.upper()}")
