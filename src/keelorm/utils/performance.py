"""
Round-trip accounting and N+1 query detection.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List, Sequence

SLOW_QUERY_ENV = "KEELORM_SLOW_QUERY_MS"
N_PLUS_ONE_ENV = "KEELORM_N_PLUS_ONE_THRESHOLD"


def _resolve_int(env_var: str, *, default: int, override: int | None) -> int:
    if override is not None:
        return override
    raw = os.getenv(env_var)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {env_var} must be an integer, got {raw!r}") from exc
    if value < 0:
        raise ValueError(f"Environment variable {env_var} must not be negative")
    return value


def resolve_slow_query_ms(*, default: int = 100, override: int | None = None) -> int:
    return _resolve_int(SLOW_QUERY_ENV, default=default, override=override)


def resolve_n_plus_one_threshold(*, default: int = 5, override: int | None = None) -> int:
    return _resolve_int(N_PLUS_ONE_ENV, default=default, override=override)


@dataclass
class QueryStat:
    sql: str
    count: int = 0
    total_ms: float = 0.0
    fingerprints: set[str] = field(default_factory=set)
    samples: List[str] = field(default_factory=list)

    def record(self, fingerprint: str, elapsed_ms: float, *, sample_limit: int) -> None:
        self.count += 1
        self.total_ms += elapsed_ms
        if fingerprint and fingerprint not in self.fingerprints:
            self.fingerprints.add(fingerprint)
            if len(self.samples) < sample_limit:
                self.samples.append(fingerprint)

    @property
    def average_ms(self) -> float:
        if self.count == 0:
            return 0.0
        return self.total_ms / self.count


@dataclass
class StoreStats:
    """
    Backing-store round trips split by kind.
    """

    fetches: int = 0
    writes: int = 0
    other: int = 0

    @property
    def round_trips(self) -> int:
        return self.fetches + self.writes + self.other

    def reset(self) -> None:
        self.fetches = 0
        self.writes = 0
        self.other = 0


class PerformanceTracker:
    """
    Tracks executed statements and warns about potential N+1 patterns.
    """

    def __init__(
        self,
        logger: logging.Logger,
        *,
        n_plus_one_threshold: int | None = None,
        sample_size: int = 5,
    ) -> None:
        self.logger = logger
        self.n_plus_one_threshold = resolve_n_plus_one_threshold(override=n_plus_one_threshold)
        self.sample_size = sample_size
        self.stats: dict[str, QueryStat] = {}
        self._reported: set[str] = set()

    def record(self, sql: str, params: Sequence[object], elapsed_ms: float) -> None:
        normalized_sql = self._normalize_sql(sql)
        fingerprint = self._fingerprint(params)
        stat = self.stats.setdefault(normalized_sql, QueryStat(sql=normalized_sql))
        stat.record(fingerprint, elapsed_ms, sample_limit=self.sample_size)
        if self._should_report(stat):
            self._report(normalized_sql, stat)

    def summary(self) -> List[dict[str, object]]:
        return [
            {
                "sql": stat.sql,
                "count": stat.count,
                "total_ms": stat.total_ms,
                "average_ms": stat.average_ms,
                "distinct_params": len(stat.fingerprints),
            }
            for stat in self.stats.values()
        ]

    def reset(self) -> None:
        self.stats.clear()
        self._reported.clear()

    def _should_report(self, stat: QueryStat) -> bool:
        if not stat.sql.upper().startswith("SELECT"):
            return False
        if stat.count < self.n_plus_one_threshold:
            return False
        if len(stat.fingerprints) < 2:
            return False
        return stat.sql not in self._reported

    def _report(self, sql: str, stat: QueryStat) -> None:
        self._reported.add(sql)
        self.logger.warning(
            "Potential N+1 detected for SQL '%s' (%s executions, %s distinct params)",
            self._abbreviate(sql),
            stat.count,
            len(stat.fingerprints),
            extra={"sql": sql, "count": stat.count, "distinct_params": len(stat.fingerprints)},
        )

    @staticmethod
    def _normalize_sql(sql: str) -> str:
        return " ".join(sql.strip().split())

    @staticmethod
    def _fingerprint(params: Sequence[object]) -> str:
        if not params:
            return ""
        return repr(tuple(params))

    @staticmethod
    def _abbreviate(sql: str, max_length: int = 80) -> str:
        if len(sql) <= max_length:
            return sql
        return sql[: max_length - 3] + "..."
