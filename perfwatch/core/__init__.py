"""
Core Module
Metric data model, history store and the monitoring engine.

Exports:
    Models: MetricSample, MetricReading, Threshold, MetricProfile, MetricRecord
    Store: MetricStore
    Engine: PerformanceMonitor
    Exposition: encode_prometheus, dashboard_snapshot
    Converters: to_metric_sample, parse_timeframe
"""

from .models import (
    InsightType,
    MetricCategory,
    MetricProfile,
    MetricReading,
    MetricRecord,
    MetricSample,
    Polarity,
    Threshold,
    parse_timeframe,
    to_metric_sample,
    utcnow,
)

from .store import MetricStore
from .exposition import dashboard_snapshot, encode_prometheus
from .engine import Measurement, PerformanceMonitor

__all__ = [
    # Models
    "InsightType",
    "MetricCategory",
    "MetricProfile",
    "MetricReading",
    "MetricRecord",
    "MetricSample",
    "Polarity",
    "Threshold",
    "parse_timeframe",
    "to_metric_sample",
    "utcnow",
    # Store
    "MetricStore",
    # Exposition
    "dashboard_snapshot",
    "encode_prometheus",
    # Engine
    "Measurement",
    "PerformanceMonitor",
]
