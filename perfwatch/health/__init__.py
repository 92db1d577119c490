"""
Health Aggregation
Per-component scoring from injected probes, averaged into system health.

Structure:
    health/
    ├── models.py      → ProbeReading, HealthRule, ComponentHealth, SystemHealth
    ├── probes.py      → HealthProbe type, MetricWindowProbe
    └── aggregator.py  → HealthAggregator, build_default_rules
"""

from .models import (
    ComponentHealth,
    HealthRule,
    HealthStatus,
    ProbeReading,
    SystemHealth,
    status_for_score,
)

from .probes import HealthProbe, MetricWindowProbe
from .aggregator import HealthAggregator, build_default_rules

__all__ = [
    # Models
    "ComponentHealth",
    "HealthRule",
    "HealthStatus",
    "ProbeReading",
    "SystemHealth",
    "status_for_score",
    # Probes
    "HealthProbe",
    "MetricWindowProbe",
    # Aggregator
    "HealthAggregator",
    "build_default_rules",
]
