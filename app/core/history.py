import itertools
import threading
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from app.core.schemas import ExecutionRecord, ExecutionType


class ExecutionHistory:
    """
    Bounded in-memory log of successful executions.

    Holds at most `capacity` records; once full, each new record evicts the
    oldest one. Nothing is persisted, a restart starts from empty.
    """

    def __init__(self, capacity: int = 50):
        if capacity < 1:
            raise ValueError("History capacity must be at least 1")
        self.capacity = capacity
        self._records = deque(maxlen=capacity)
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._last_timestamp: Optional[datetime] = None

    def record(
        self,
        type: ExecutionType,
        sql: str,
        database: str,
        row_count: int,
        execution_time_ms: float,
        scenario_key: Optional[str] = None,
        scenario_name: Optional[str] = None,
    ) -> ExecutionRecord:
        with self._lock:
            timestamp = datetime.now(timezone.utc)
            # Keep timestamps strictly increasing even on coarse clocks
            if self._last_timestamp is not None and timestamp <= self._last_timestamp:
                timestamp = self._last_timestamp + timedelta(microseconds=1)
            self._last_timestamp = timestamp

            entry = ExecutionRecord(
                id=next(self._ids),
                timestamp=timestamp,
                type=type,
                sql=sql,
                database=database,
                row_count=row_count,
                execution_time_ms=execution_time_ms,
                scenario_key=scenario_key,
                scenario_name=scenario_name,
            )
            self._records.append(entry)
            return entry

    def recent(
        self, limit: Optional[int] = None, newest_first: bool = True
    ) -> List[ExecutionRecord]:
        with self._lock:
            records = list(self._records)

        if limit is not None:
            records = records[-limit:] if limit > 0 else []
        if newest_first:
            records.reverse()
        return records

    def clear(self):
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
