"""
SQLite Metric Sink
Best-effort persistence of individual metric records.

Responsibilities:
- Append metric records to the database from a background writer
- Read records back for export and inspection
- Handle schema

NOT responsible for:
- Alerting or evaluation (in-memory engine only)
- Guaranteeing delivery: a full queue or a failed write drops records
"""

import json
import queue
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import structlog

from perfwatch.core.models import MetricRecord

logger = structlog.get_logger(__name__)

_STOP = object()


class SQLiteMetricSink:
    """
    SQLite persistence for metric records.

    Tables:
        - metric_records: one row per recorded sample

    Usage:
        sink = SQLiteMetricSink("data/perfwatch.db")
        sink.start()
        sink.submit(record)   # never blocks, never raises
        sink.stop()           # drains what is queued
    """

    def __init__(self, db_path: str = "data/perfwatch.db", queue_size: int = 10000):
        self.db_path = db_path
        self._queue: queue.Queue = queue.Queue(maxsize=queue_size)
        self._thread: Optional[threading.Thread] = None
        self._stats = {"written": 0, "dropped": 0, "failed": 0}
        self._ensure_directory()
        self._init_schema()

    def _ensure_directory(self):
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    def _init_schema(self):
        with sqlite3.connect(self.db_path) as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS metric_records (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    value REAL NOT NULL,
                    target REAL,
                    unit TEXT DEFAULT '',
                    timestamp TEXT NOT NULL,
                    organization_id TEXT,
                    user_id TEXT,
                    metadata TEXT DEFAULT '{}',
                    category TEXT DEFAULT 'custom',
                    severity TEXT DEFAULT 'normal',
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP
                );

                CREATE INDEX IF NOT EXISTS idx_metric_records_name_ts
                ON metric_records(name, timestamp);
            """)

    # =========================================================================
    # Background Writer
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._thread = threading.Thread(target=self._run, name="perfwatch-sink", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        if not self.is_running:
            return
        try:
            self._queue.put(_STOP, timeout=timeout)
        except queue.Full:
            logger.warning("metric_sink_stop_queue_full")
        self._thread.join(timeout)
        self._thread = None

    def submit(self, record: MetricRecord) -> bool:
        """Queue a record for writing. Returns False when it was dropped."""
        try:
            self._queue.put_nowait(record)
            return True
        except queue.Full:
            self._stats["dropped"] += 1
            logger.warning("metric_record_dropped", name=record.name, reason="queue_full")
            return False

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                break
            batch = [item]
            stop_after = False
            while len(batch) < 500:
                try:
                    extra = self._queue.get_nowait()
                except queue.Empty:
                    break
                if extra is _STOP:
                    stop_after = True
                    break
                batch.append(extra)
            self._write(batch)
            if stop_after:
                break

    def _write(self, records: List[MetricRecord]) -> None:
        try:
            self.save_records(records)
        except Exception:
            self._stats["failed"] += len(records)
            logger.exception("metric_records_write_failed", count=len(records))

    # =========================================================================
    # Write Operations
    # =========================================================================

    def save_records(self, records: List[MetricRecord]) -> int:
        if not records:
            return 0

        with sqlite3.connect(self.db_path) as conn:
            conn.executemany(
                """INSERT OR REPLACE INTO metric_records
                   (id, name, value, target, unit, timestamp, organization_id,
                    user_id, metadata, category, severity)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                [
                    (r.id, r.name, r.value, r.target, r.unit, r.timestamp.isoformat(),
                     r.organization_id, r.user_id, json.dumps(r.metadata, default=str),
                     r.category, r.severity)
                    for r in records
                ]
            )
        self._stats["written"] += len(records)
        return len(records)

    # =========================================================================
    # Read Operations
    # =========================================================================

    def get_records(self, name: Optional[str] = None, limit: int = 1000) -> List[MetricRecord]:
        query = "SELECT id, name, value, target, unit, timestamp, organization_id, user_id, metadata, category, severity FROM metric_records"
        params: list = []
        if name:
            query += " WHERE name = ?"
            params.append(name)
        query += " ORDER BY timestamp DESC LIMIT ?"
        params.append(limit)

        with sqlite3.connect(self.db_path) as conn:
            rows = conn.execute(query, params).fetchall()

        records = [
            MetricRecord(
                id=row[0], name=row[1], value=row[2], target=row[3], unit=row[4] or "",
                timestamp=datetime.fromisoformat(row[5]), organization_id=row[6],
                user_id=row[7], metadata=json.loads(row[8] or "{}"),
                category=row[9], severity=row[10],
            )
            for row in rows
        ]
        records.reverse()
        return records

    def count(self) -> int:
        with sqlite3.connect(self.db_path) as conn:
            return conn.execute("SELECT COUNT(*) FROM metric_records").fetchone()[0]

    def stats(self) -> dict:
        return {**self._stats, "queued": self._queue.qsize(), "running": self.is_running}
