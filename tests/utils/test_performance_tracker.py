import logging

import pytest

from keelorm.utils import get_logger
from keelorm.utils.performance import (
    PerformanceTracker,
    StoreStats,
    resolve_n_plus_one_threshold,
    resolve_slow_query_ms,
)


def test_repeated_fetch_by_key_is_reported(caplog):
    caplog.set_level(logging.WARNING, logger="keelorm.tests.performance")
    tracker = PerformanceTracker(
        get_logger("tests.performance"), n_plus_one_threshold=3, sample_size=2
    )
    for team_id in range(3):
        tracker.record('SELECT "name" FROM "team" WHERE "team_id" = ?', [team_id], 1.5)
    assert any("Potential N+1 detected" in rec.message for rec in caplog.records)

    summary = tracker.summary()
    assert summary[0]["count"] == 3
    assert summary[0]["distinct_params"] == 3


def test_writes_and_identical_params_are_not_reported(caplog):
    caplog.set_level(logging.WARNING, logger="keelorm.tests.performance")
    tracker = PerformanceTracker(get_logger("tests.performance"), n_plus_one_threshold=2)
    for _ in range(4):
        tracker.record('INSERT INTO "team" ("name") VALUES (?)', ["A"], 0.5)
        tracker.record('SELECT * FROM "team" WHERE "team_id" = ?', [1], 0.5)
    assert not [rec for rec in caplog.records if "N+1" in rec.message]


def test_performance_tracker_reset():
    tracker = PerformanceTracker(get_logger("tests.performance"), n_plus_one_threshold=2)
    tracker.record("SELECT 1", [], 0.5)
    tracker.reset()
    assert tracker.summary() == []


def test_store_stats_round_trips():
    stats = StoreStats(fetches=6, writes=2, other=1)
    assert stats.round_trips == 9
    stats.reset()
    assert stats.round_trips == 0


def test_thresholds_read_environment(monkeypatch):
    monkeypatch.setenv("KEELORM_N_PLUS_ONE_THRESHOLD", "7")
    monkeypatch.setenv("KEELORM_SLOW_QUERY_MS", "250")
    assert resolve_n_plus_one_threshold() == 7
    assert resolve_slow_query_ms() == 250
    assert resolve_slow_query_ms(override=5) == 5


@pytest.mark.parametrize("raw", ["many", "-1"])
def test_invalid_threshold_environment(monkeypatch, raw):
    monkeypatch.setenv("KEELORM_N_PLUS_ONE_THRESHOLD", raw)
    with pytest.raises(ValueError):
        resolve_n_plus_one_threshold()
