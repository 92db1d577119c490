"""
Analytics Output Types
Dataclasses for detector and trend results.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class TrendDirection(str, Enum):
    IMPROVING = "improving"
    DEGRADING = "degrading"
    STABLE = "stable"


@dataclass
class AnomalyResult:
    """
    Recent-vs-historical deviation for one metric.

    z_score is +inf when the historical window has zero variance
    but the recent mean moved away from it.
    """
    metric: str
    z_score: float
    recent_avg: float
    historical_avg: float
    historical_std: float
    severity: Optional[str] = None

    @property
    def is_anomaly(self) -> bool:
        return self.severity is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric,
            "z_score": round(self.z_score, 4) if math.isfinite(self.z_score) else None,
            "recent_avg": round(self.recent_avg, 4),
            "historical_avg": round(self.historical_avg, 4),
            "historical_std": round(self.historical_std, 4),
            "severity": self.severity,
        }


@dataclass
class TrendResult:
    """
    Linear fit over the most recent window.

    slope is per sample; change_rate is slope as a percentage of the window mean.
    confidence is R² of the fit, clamped to [0, 1].
    """
    metric: str
    timeframe: str
    trend: TrendDirection
    confidence: float
    current_value: float
    projected_value: float
    change_rate: float
    slope: float
    samples: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric,
            "timeframe": self.timeframe,
            "trend": self.trend.value,
            "confidence": round(self.confidence, 4),
            "current_value": round(self.current_value, 4),
            "projected_value": round(self.projected_value, 4),
            "change_rate": round(self.change_rate, 4),
            "slope": round(self.slope, 6),
            "samples": self.samples,
        }
