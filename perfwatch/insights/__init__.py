"""
Predictive Insights
Forward projections built on the trend analyzer.

Structure:
    insights/
    ├── models.py     → TimeHorizon, PredictiveInsight and its parts
    └── generator.py  → PredictiveInsightGenerator
"""

from .models import (
    Impact,
    ImpactSeverity,
    Prediction,
    PredictiveInsight,
    Recommendations,
    TimeHorizon,
)

from .generator import PredictiveInsightGenerator, classify_impact

__all__ = [
    "Impact",
    "ImpactSeverity",
    "Prediction",
    "PredictiveInsight",
    "Recommendations",
    "TimeHorizon",
    "PredictiveInsightGenerator",
    "classify_impact",
]
