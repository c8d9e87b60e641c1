import threading

import pytest

from app.core.history import ExecutionHistory
from app.core.schemas import ExecutionType


def _fill(history: ExecutionHistory, count: int):
    for i in range(count):
        history.record(
            type=ExecutionType.CUSTOM,
            sql=f"select {i}",
            database="rdb",
            row_count=1,
            execution_time_ms=0.5,
        )


def test_history_never_exceeds_capacity():
    history = ExecutionHistory(capacity=5)
    _fill(history, 8)

    assert len(history) == 5
    # Oldest three were evicted first
    oldest_first = [r.sql for r in history.recent(newest_first=False)]
    assert oldest_first == ["select 3", "select 4", "select 5", "select 6", "select 7"]


def test_recent_is_newest_first_by_default():
    history = ExecutionHistory(capacity=10)
    _fill(history, 3)
    assert [r.sql for r in history.recent()] == ["select 2", "select 1", "select 0"]


def test_recent_limit():
    history = ExecutionHistory(capacity=10)
    _fill(history, 6)

    assert [r.sql for r in history.recent(limit=2)] == ["select 5", "select 4"]
    assert [r.sql for r in history.recent(limit=2, newest_first=False)] == [
        "select 4",
        "select 5",
    ]
    assert history.recent(limit=0) == []


def test_ids_and_timestamps_increase():
    history = ExecutionHistory(capacity=10)
    _fill(history, 4)

    records = history.recent(newest_first=False)
    ids = [r.id for r in records]
    stamps = [r.timestamp for r in records]
    assert ids == sorted(ids) and len(set(ids)) == 4
    assert all(a < b for a, b in zip(stamps, stamps[1:]))


def test_clear():
    history = ExecutionHistory(capacity=3)
    _fill(history, 3)
    history.clear()
    assert len(history) == 0
    assert history.recent() == []


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        ExecutionHistory(capacity=0)


def test_record_serializes_with_camel_case_keys():
    history = ExecutionHistory(capacity=2)
    record = history.record(
        type=ExecutionType.SCENARIO,
        sql="select 1",
        database="mixed",
        row_count=3,
        execution_time_ms=2.0,
        scenario_key="regionPowerTop10",
        scenario_name="Top 10 regions by consumption",
    )
    data = record.model_dump(mode="json", by_alias=True)
    assert data["rowCount"] == 3
    assert data["executionTime"] == 2.0
    assert data["scenarioKey"] == "regionPowerTop10"
    assert data["type"] == "scenario"


def test_concurrent_records_stay_bounded():
    history = ExecutionHistory(capacity=20)
    sizes = []

    def worker():
        _fill(history, 50)
        sizes.append(len(history))

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(history) == 20
    assert all(size <= 20 for size in sizes)
    ids = [r.id for r in history.recent(newest_first=False)]
    assert ids == sorted(ids) and len(set(ids)) == 20
