"""
Health Probes
Injectable callables that report a component's recent behaviour.

A probe is any zero-argument callable returning a ProbeReading, either
directly or as an awaitable:

    async def database_probe() -> ProbeReading:
        started = time.perf_counter()
        await pool.execute("SELECT 1")
        return ProbeReading(latency_ms=(time.perf_counter() - started) * 1000)
"""

from typing import Awaitable, Callable, List, Optional, Union

import numpy as np

from perfwatch.core.store import MetricStore

from .models import ProbeReading

HealthProbe = Callable[[], Union[ProbeReading, Awaitable[ProbeReading]]]


class MetricWindowProbe:
    """
    Derives a component reading from recent averages in the MetricStore.

    Each figure is the mean of the last `window` samples of its metric,
    or None when the metric has no samples yet.
    """

    def __init__(
        self,
        store: MetricStore,
        latency_metric: Optional[str] = "response_time",
        error_metric: Optional[str] = "error_rate",
        throughput_metric: Optional[str] = "throughput",
        availability_metric: Optional[str] = None,
        window: int = 10,
    ):
        self._store = store
        self.latency_metric = latency_metric
        self.error_metric = error_metric
        self.throughput_metric = throughput_metric
        self.availability_metric = availability_metric
        self.window = window

    @property
    def metrics(self) -> List[str]:
        """Metric names this probe watches"""
        return [
            m for m in (
                self.latency_metric,
                self.error_metric,
                self.throughput_metric,
                self.availability_metric,
            )
            if m
        ]

    def _average(self, metric: Optional[str]) -> Optional[float]:
        if not metric:
            return None
        values = self._store.values(metric, limit=self.window)
        if not values:
            return None
        return float(np.mean(values))

    def __call__(self) -> ProbeReading:
        return ProbeReading(
            latency_ms=self._average(self.latency_metric),
            error_rate=self._average(self.error_metric),
            throughput=self._average(self.throughput_metric),
            availability=self._average(self.availability_metric),
            details={"window": self.window, "metrics": self.metrics},
        )
