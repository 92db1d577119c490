"""Shared test fixtures for all test modules."""

from datetime import timedelta
from pathlib import Path
from typing import List, Sequence

import pytest

from perfwatch.alerts import AlertManager
from perfwatch.analytics import ThresholdRegistry
from perfwatch.config import MonitorSettings
from perfwatch.core import MetricSample, MetricStore, PerformanceMonitor, utcnow


def make_samples(name: str, values: Sequence[float], unit: str = "", step_seconds: float = 10) -> List[MetricSample]:
    """Evenly spaced samples ending now, oldest first."""
    start = utcnow() - timedelta(seconds=step_seconds * len(values))
    return [
        MetricSample(name=name, value=v, unit=unit, timestamp=start + timedelta(seconds=step_seconds * i))
        for i, v in enumerate(values)
    ]


@pytest.fixture
def settings() -> MonitorSettings:
    """Settings with no default health component and a short tick."""
    return MonitorSettings(
        register_default_component=False,
        tick_interval_seconds=0.05,
        health_check_timeout_seconds=0.2,
        collector_timeout_seconds=0.2,
    )


@pytest.fixture
def monitor(settings: MonitorSettings):
    """A monitor with default thresholds; stopped after the test."""
    monitor = PerformanceMonitor(settings)
    yield monitor
    if monitor.is_running:
        monitor.stop()


@pytest.fixture
def store() -> MetricStore:
    return MetricStore(capacity=100)


@pytest.fixture
def alerts() -> AlertManager:
    return AlertManager()


@pytest.fixture
def registry() -> ThresholdRegistry:
    return ThresholdRegistry()


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    """Provide a temporary database path for sink tests."""
    return str(tmp_path / "perfwatch.db")
