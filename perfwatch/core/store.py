"""
In-Memory Metric Store
Fast, bounded, metric-keyed sample history for real-time evaluation.

Purpose:
- Detectors need fast access to the recent window
- Health probes and exports need recent averages
- No disk I/O allowed here

This is READ-OPTIMIZED, NOT DURABLE.
"""

import bisect
import heapq
import threading
from collections import deque
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from .models import MetricSample, utcnow


class MetricStore:
    """
    Per-metric bounded sample history.

    - One deque per metric name, FIFO eviction at `capacity`
    - Samples kept in timestamp order (late samples are inserted in place)
    - Age-based purge driven by the scheduler
    - All operations hold an internal lock

    Usage:
        store = MetricStore(capacity=1000, max_age=timedelta(hours=24))
        store.record("response_time", 812.0, "ms", tags={"endpoint": "/chat"})
        recent = store.query("response_time", since=utcnow() - timedelta(minutes=5))
    """

    def __init__(self, capacity: int = 1000, max_age: Optional[timedelta] = None):
        self.capacity = capacity
        self.max_age = max_age or timedelta(hours=24)
        self._data: Dict[str, deque] = {}
        self._lock = threading.RLock()
        self._count: int = 0
        self._evicted: int = 0

    def append(self, sample: MetricSample) -> MetricSample:
        """Add a sample, keeping the series ordered by timestamp"""
        with self._lock:
            series = self._data.get(sample.name)
            if series is None:
                series = deque(maxlen=self.capacity)
                self._data[sample.name] = series

            if series and sample.timestamp < series[-1].timestamp:
                self._insert_in_order(series, sample)
            else:
                if len(series) == series.maxlen:
                    self._evicted += 1
                series.append(sample)

            self._count += 1
            return sample

    def record(
        self,
        name: str,
        value: float,
        unit: str = "",
        tags: Optional[Dict[str, str]] = None,
        context: Optional[Dict[str, Any]] = None,
        timestamp: Optional[datetime] = None,
    ) -> MetricSample:
        """Build and append a sample. Raises pydantic.ValidationError on bad input."""
        kwargs = dict(name=name, value=value, unit=unit, tags=tags or {}, context=context or {})
        if timestamp is not None:
            kwargs["timestamp"] = timestamp
        return self.append(MetricSample(**kwargs))

    def _insert_in_order(self, series: deque, sample: MetricSample) -> None:
        index = bisect.bisect_right(series, sample.timestamp, key=lambda s: s.timestamp)
        if len(series) == series.maxlen:
            if index == 0:
                # Older than everything retained: it would be evicted immediately
                self._evicted += 1
                return
            # Oldest sample goes first so the insert cannot overflow
            series.popleft()
            self._evicted += 1
            index -= 1
        series.insert(index, sample)

    def query(
        self,
        name: Optional[str] = None,
        since: Optional[datetime] = None,
        tags: Optional[Dict[str, str]] = None,
        limit: Optional[int] = None,
    ) -> List[MetricSample]:
        """
        Return samples in timestamp order.

        Args:
            name: Metric name; all metrics merged by timestamp when omitted
            since: Only samples with timestamp >= since
            tags: Every given key/value must be present on the sample
            limit: Keep only the most recent `limit` samples
        """
        with self._lock:
            if name is not None:
                series = self._data.get(name)
                samples = list(series) if series else []
            else:
                samples = list(
                    heapq.merge(*(list(s) for s in self._data.values()), key=lambda s: s.timestamp)
                )

        if since is not None:
            samples = [s for s in samples if s.timestamp >= since]
        if tags:
            samples = [
                s for s in samples
                if all(s.tags.get(k) == str(v) for k, v in tags.items())
            ]
        if limit:
            return samples[-limit:]
        return samples

    def values(self, name: str, limit: Optional[int] = None) -> List[float]:
        """Get value array for analytics (oldest first)"""
        return [s.value for s in self.query(name, limit=limit)]

    def latest(self, name: str) -> Optional[MetricSample]:
        with self._lock:
            series = self._data.get(name)
            if not series:
                return None
            return series[-1]

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._data.keys())

    def snapshot(self) -> Dict[str, List[MetricSample]]:
        """Copy of every series, for an evaluation pass"""
        with self._lock:
            return {name: list(series) for name, series in self._data.items()}

    def count(self, name: Optional[str] = None) -> int:
        """Samples currently retained"""
        with self._lock:
            if name:
                return len(self._data.get(name, ()))
            return sum(len(s) for s in self._data.values())

    def purge(self, max_age: Optional[timedelta] = None, now: Optional[datetime] = None) -> int:
        """Drop samples older than max_age. Returns how many were removed."""
        cutoff = (now or utcnow()) - (max_age or self.max_age)
        removed = 0
        with self._lock:
            for name in list(self._data.keys()):
                series = self._data[name]
                while series and series[0].timestamp < cutoff:
                    series.popleft()
                    removed += 1
                if not series:
                    del self._data[name]
        return removed

    def clear(self, name: Optional[str] = None) -> None:
        with self._lock:
            if name:
                self._data.pop(name, None)
            else:
                self._data.clear()
                self._count = 0
                self._evicted = 0

    def stats(self) -> dict:
        with self._lock:
            return {
                "total_recorded": self._count,
                "evicted": self._evicted,
                "metrics": len(self._data),
                "retained": sum(len(s) for s in self._data.values()),
                "per_metric": {name: len(s) for name, s in self._data.items()},
            }
