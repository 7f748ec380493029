"""
Backing-store facade over a database adapter.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Sequence

from ..adapters.errors import AdapterError
from ..core.keys import EntityKey
from ..dialects.base import Dialect
from ..query.compiler import StatementCompiler
from ..utils import get_logger
from ..utils.performance import PerformanceTracker, StoreStats

if TYPE_CHECKING:
    from ..adapters.base import DatabaseAdapter
    from ..core.model import Model


WRITE_PREFIXES = ("INSERT", "UPDATE", "DELETE")


@dataclass(frozen=True)
class StatementResult:
    rowcount: int
    generated_key: Any = None


class BackingStore:
    """
    Row-level operations used by the session, counted per round trip.

    Every call reaches the adapter exactly once and bumps :attr:`stats`, so
    callers can assert how many round trips an operation cost.
    """

    def __init__(
        self,
        adapter: "DatabaseAdapter",
        *,
        performance_threshold: int | None = None,
    ) -> None:
        self.adapter = adapter
        self.statements = StatementCompiler(adapter.dialect)
        self.stats = StoreStats()
        self.logger = get_logger("persistence.store")
        self.performance = PerformanceTracker(
            get_logger("performance"), n_plus_one_threshold=performance_threshold
        )
        self._depth = 0

    @property
    def dialect(self) -> Dialect:
        return self.adapter.dialect

    # Statements ----------------------------------------------------------
    def execute(
        self,
        sql: str,
        params: Sequence[Any] | None = None,
        *,
        returning: Optional[str] = None,
    ) -> StatementResult:
        """
        Run a write or DDL statement. With ``returning`` set the key
        generated for that column is read back.
        """
        cursor = self._run(sql, params)
        generated = self.adapter.last_insert_id(cursor) if returning else None
        rowcount = getattr(cursor, "rowcount", -1)
        return StatementResult(rowcount=rowcount if rowcount is not None else -1, generated_key=generated)

    def fetch_one(self, model: type["Model"], key: EntityKey) -> Optional[Dict[str, Any]]:
        sql, params = self.statements.select_by_key(model, key)
        rows = self.fetch_many(sql, params)
        return rows[0] if rows else None

    def exists(self, model: type["Model"], key: EntityKey) -> bool:
        sql, params = self.statements.exists(model, key)
        return bool(self.fetch_tuples(sql, params))

    def fetch_many(self, sql: str, params: Sequence[Any] | None = None) -> List[Dict[str, Any]]:
        cursor = self._run(sql, params)
        return [self._row_to_dict(cursor, row) for row in cursor.fetchall()]

    def fetch_tuples(self, sql: str, params: Sequence[Any] | None = None) -> List[tuple]:
        cursor = self._run(sql, params)
        return [tuple(row) for row in cursor.fetchall()]

    # Transactions --------------------------------------------------------
    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """
        Run the block in one store transaction. Nested blocks join the
        outer transaction.
        """
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        self.adapter.begin()
        self.stats.other += 1
        self._depth = 1
        try:
            yield
        except BaseException:
            self._depth = 0
            self._rollback()
            raise
        self._depth = 0
        self.adapter.commit()
        self.stats.other += 1

    def _rollback(self) -> None:
        try:
            self.adapter.rollback()
        except AdapterError:
            self.logger.exception("Rollback failed after an aborted batch")
        finally:
            self.stats.other += 1

    # Helpers -------------------------------------------------------------
    def _run(self, sql: str, params: Sequence[Any] | None) -> Any:
        param_list = list(params or [])
        self._count(sql)
        started = time.perf_counter()
        cursor = self.adapter.execute(sql, param_list)
        self.performance.record(sql, param_list, (time.perf_counter() - started) * 1000)
        return cursor

    def _count(self, sql: str) -> None:
        head = sql.lstrip().split(None, 1)[0].upper() if sql.strip() else ""
        if head in ("SELECT", "WITH"):
            self.stats.fetches += 1
        elif head in WRITE_PREFIXES:
            self.stats.writes += 1
        else:
            self.stats.other += 1

    @staticmethod
    def _row_to_dict(cursor: Any, row: Any) -> Dict[str, Any]:
        if hasattr(row, "keys"):
            return {key: row[key] for key in row.keys()}
        if getattr(cursor, "description", None):
            columns = [col[0] for col in cursor.description]
            return {col: row[idx] for idx, col in enumerate(columns)}
        raise ValueError("Unable to map database row to dictionary.")
