"""
perfwatch
Real-time performance monitoring and alerting.

Structure:
    perfwatch/
    ├── core/        → Metric models, MetricStore, PerformanceMonitor, exposition
    ├── analytics/   → Threshold, anomaly and trend detectors
    ├── alerts/      → AlertManager (dedup + lifecycle + listeners)
    ├── health/      → Component probes and system health scoring
    ├── insights/    → Predictive insights over trends
    ├── services/    → MonitoringScheduler (collection → evaluation → cleanup)
    ├── db/          → Optional SQLite sink
    ├── api/         → FastAPI routers
    └── main.py      → create_app()

Usage:
    from perfwatch import PerformanceMonitor

    monitor = PerformanceMonitor()
    monitor.start()
    monitor.record_api_response("/orders", "POST", 201, duration_ms=184.0)
    monitor.get_active_alerts()
    monitor.stop()
"""

from .config import MonitorSettings, get_settings
from .core import MetricSample, Polarity, InsightType, PerformanceMonitor

__version__ = "2.0.0"

__all__ = [
    "MonitorSettings",
    "get_settings",
    "MetricSample",
    "Polarity",
    "InsightType",
    "PerformanceMonitor",
]
