"""
Monitoring Scheduler
Drives the periodic collection → evaluation → cleanup cycle.

Usage:
    scheduler = MonitoringScheduler(
        collect=monitor.collect,
        evaluate=monitor.evaluate,
        cleanup=monitor.cleanup,
        interval=10.0,
    )
    scheduler.start()
    ...
    scheduler.stop()   # waits for the in-flight tick to finish
"""

import asyncio
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog

from perfwatch.core.models import utcnow

logger = structlog.get_logger(__name__)


@dataclass
class SchedulerStats:
    """Scheduler statistics"""
    is_running: bool = False
    ticks: int = 0
    errors: int = 0
    last_tick_at: Optional[datetime] = None
    last_tick_duration_ms: float = 0.0
    started_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_running": self.is_running,
            "ticks": self.ticks,
            "errors": self.errors,
            "last_tick_at": self.last_tick_at.isoformat() if self.last_tick_at else None,
            "last_tick_duration_ms": round(self.last_tick_duration_ms, 2),
            "uptime_seconds": (utcnow() - self.started_at).total_seconds() if self.started_at else 0,
        }


class MonitoringScheduler:
    """
    Periodic ticker on a background thread with its own event loop.

    Each tick runs three phases in order. A failing phase is logged and
    the remaining phases still run. stop() never interrupts a tick.
    """

    def __init__(
        self,
        collect: Callable[[], Awaitable[Any]],
        evaluate: Callable[[], Any],
        cleanup: Callable[[], Any],
        interval: float = 10.0,
    ):
        self._collect = collect
        self._evaluate = evaluate
        self._cleanup = cleanup
        self.interval = interval
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._tick_lock = threading.Lock()
        self._stats = SchedulerStats()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def stats(self) -> SchedulerStats:
        return self._stats

    def start(self) -> Dict[str, Any]:
        if self.is_running:
            return {"status": "already_running"}

        self._stop_event.clear()
        self._stats = SchedulerStats(is_running=True, started_at=utcnow())
        self._thread = threading.Thread(target=self._run_loop, name="perfwatch-scheduler", daemon=True)
        self._thread.start()

        logger.info("scheduler_started", interval=self.interval)
        return {"status": "started", "interval": self.interval}

    def stop(self, timeout: Optional[float] = None) -> Dict[str, Any]:
        if not self.is_running:
            return {"status": "not_running"}

        self._stop_event.set()
        self._thread.join(timeout)
        self._thread = None
        self._stats.is_running = False

        logger.info("scheduler_stopped", ticks=self._stats.ticks, errors=self._stats.errors)
        return {"status": "stopped", "ticks": self._stats.ticks}

    def run_once(self) -> None:
        """Run a single tick on the calling thread"""
        asyncio.run(self.tick())

    def _run_loop(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            while not self._stop_event.is_set():
                loop.run_until_complete(self.tick())
                self._stop_event.wait(self.interval)
        finally:
            loop.close()
            self._stats.is_running = False

    async def tick(self) -> None:
        with self._tick_lock:
            started = time.perf_counter()

            try:
                await self._collect()
            except Exception:
                self._stats.errors += 1
                logger.exception("scheduler_collect_failed")

            try:
                self._evaluate()
            except Exception:
                self._stats.errors += 1
                logger.exception("scheduler_evaluate_failed")

            try:
                self._cleanup()
            except Exception:
                self._stats.errors += 1
                logger.exception("scheduler_cleanup_failed")

            self._stats.ticks += 1
            self._stats.last_tick_at = utcnow()
            self._stats.last_tick_duration_ms = (time.perf_counter() - started) * 1000
