"""
Analytics Module
Detectors that turn metric histories into alerts and trend reports.

Structure:
    analytics/
    ├── models.py      → Output types (dataclasses)
    ├── thresholds.py  → ThresholdRegistry, ThresholdEvaluator (every sample)
    ├── anomaly.py     → AnomalyDetector (z-score, evaluation pass)
    └── trend.py       → TrendAnalyzer (OLS slope + R², evaluation pass)

Design Principles:
    ✓ Detectors read histories handed to them; they never touch the store
    ✓ Alerts go through AlertManager.upsert, which owns deduplication
    ✓ Insufficient history is a silent skip, not an error
"""

from .models import (
    AnomalyResult,
    TrendDirection,
    TrendResult,
)

from .thresholds import ThresholdRegistry, ThresholdEvaluator
from .anomaly import AnomalyDetector
from .trend import TrendAnalyzer

__all__ = [
    # Types
    "AnomalyResult",
    "TrendDirection",
    "TrendResult",
    # Detectors
    "ThresholdRegistry",
    "ThresholdEvaluator",
    "AnomalyDetector",
    "TrendAnalyzer",
]
