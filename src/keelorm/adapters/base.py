"""
Adapter protocol and the shared DB-API implementation.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, Sequence

from ..dialects.base import Dialect
from ..errors import StoreConstraintError
from ..utils import get_logger, redact_params, time_call
from ..utils.performance import resolve_slow_query_ms
from .config import ConnectionConfig
from .errors import AdapterConnectionError, AdapterExecutionError, AdapterTransactionError


class DatabaseAdapter(Protocol):
    """
    Adapter interface exposing database operations used by higher layers.
    """

    dialect: Dialect
    slow_query_ms: int

    def connect(self, config: ConnectionConfig) -> Any:
        """
        Establish a connection handle using the supplied configuration.
        """

    def close(self) -> None:
        """
        Close underlying resources. Implementations should be idempotent.
        """

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> Any:
        """
        Execute one statement and return a cursor-like object. Integrity
        violations surface as :class:`StoreConstraintError`.
        """

    def begin(self) -> None:
        """
        Open an explicit transaction.
        """

    def commit(self) -> None:
        """
        Commit the open transaction.
        """

    def rollback(self) -> None:
        """
        Roll back the open transaction.
        """

    def last_insert_id(self, cursor: Any) -> Any:
        """
        Retrieve the primary key value generated by the previous insert.
        """


class DBAPIAdapter:
    """
    Common behaviour of adapters wrapping a PEP 249 driver module.

    Subclasses provide ``dialect``, ``_connect`` and the driver module; the
    driver's ``IntegrityError`` is translated into
    :class:`StoreConstraintError` and every other driver ``Error`` into
    :class:`AdapterExecutionError`.
    """

    label = "dbapi"
    begin_statement = "BEGIN"
    validate_placeholders = False

    dialect: Dialect

    def __init__(self, slow_query_ms: int | None = None) -> None:
        self.logger: logging.Logger = get_logger(f"adapters.{self.label}")
        self.slow_query_ms = resolve_slow_query_ms(default=100, override=slow_query_ms)
        self.config: ConnectionConfig | None = None
        self._connection: Any = None
        self._driver: Any = None
        self._in_transaction = False

    # ------------------------------------------------------------------ #
    # Connection management
    # ------------------------------------------------------------------ #
    def connect(self, config: ConnectionConfig) -> Any:
        driver = self._load_driver()
        connection = self._connect(driver, config)
        self._driver = driver
        self._connection = connection
        self.config = config
        self._in_transaction = False
        if config.isolation_level:
            self._apply_isolation_level(config.isolation_level)
        return connection

    def close(self) -> None:
        if self._connection is None:
            return
        try:
            self._connection.close()
        finally:
            self._connection = None
            self._in_transaction = False

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    def _ensure_connection(self) -> Any:
        if self._connection is None:
            raise AdapterConnectionError(f"{type(self).__name__} is not connected.")
        return self._connection

    def _load_driver(self) -> Any:
        raise NotImplementedError

    def _connect(self, driver: Any, config: ConnectionConfig) -> Any:
        raise NotImplementedError

    def _apply_isolation_level(self, level: str) -> None:
        return None

    # ------------------------------------------------------------------ #
    # Execution
    # ------------------------------------------------------------------ #
    def execute(self, sql: str, params: Sequence[Any] | None = None) -> Any:
        connection = self._ensure_connection()
        params = tuple(params or ())
        if self.validate_placeholders:
            self._validate_params(sql, params)
        cursor = connection.cursor()
        integrity_error = getattr(self._driver, "IntegrityError", ())
        driver_error = getattr(self._driver, "Error", ())
        try:
            with time_call(
                f"{self.label}.execute",
                self.logger,
                sql=sql,
                params=redact_params(params),
                threshold_ms=self.slow_query_ms,
            ):
                cursor.execute(sql, params)
        except integrity_error as exc:
            raise StoreConstraintError(str(exc), sql=sql, params=params) from exc
        except driver_error as exc:
            raise AdapterExecutionError(f"{self.label} rejected statement: {exc}") from exc
        return cursor

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #
    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    def begin(self) -> None:
        if self._in_transaction:
            raise AdapterTransactionError("A transaction is already open.")
        self.execute(self.begin_statement)
        self._in_transaction = True

    def commit(self) -> None:
        if not self._in_transaction:
            raise AdapterTransactionError("No open transaction to commit.")
        try:
            self.execute("COMMIT")
        finally:
            self._in_transaction = False

    def rollback(self) -> None:
        if not self._in_transaction:
            raise AdapterTransactionError("No open transaction to roll back.")
        try:
            self.execute("ROLLBACK")
        finally:
            self._in_transaction = False

    def last_insert_id(self, cursor: Any) -> Any:
        return cursor.lastrowid

    # ------------------------------------------------------------------ #
    @staticmethod
    def _count_placeholders(sql: str) -> int:
        count = 0
        idx = 0
        while idx < len(sql) - 1:
            if sql[idx] == "%" and sql[idx + 1] == "s":
                count += 1
                idx += 2
                continue
            if sql[idx] == "%" and sql[idx + 1] == "%":
                idx += 2
                continue
            idx += 1
        return count

    def _validate_params(self, sql: str, params: Sequence[Any]) -> None:
        placeholder_count = self._count_placeholders(sql)
        if placeholder_count != len(params):
            raise AdapterExecutionError(
                f"Parameter count mismatch: expected {placeholder_count}, received {len(params)}."
            )
