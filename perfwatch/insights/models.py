"""
Insight Models
Forward projections with impact and recommended actions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from perfwatch.core.models import InsightType
from perfwatch.exceptions import UnknownHorizonError


class TimeHorizon(str, Enum):
    ONE_HOUR = "1h"
    ONE_DAY = "24h"
    ONE_WEEK = "7d"
    ONE_MONTH = "30d"

    @property
    def multiplier(self) -> int:
        """Horizon length in hours; change_rate is treated as an hourly rate"""
        return HORIZON_HOURS[self]

    @classmethod
    def parse(cls, value) -> "TimeHorizon":
        try:
            return cls(value)
        except ValueError:
            raise UnknownHorizonError(value, [h.value for h in cls]) from None


HORIZON_HOURS = {
    TimeHorizon.ONE_HOUR: 1,
    TimeHorizon.ONE_DAY: 24,
    TimeHorizon.ONE_WEEK: 168,
    TimeHorizon.ONE_MONTH: 720,
}


class ImpactSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class Prediction:
    metric: str
    current_value: float
    predicted_value: float
    confidence: float
    change_rate: float
    factors: List[str] = field(default_factory=list)


@dataclass
class Impact:
    severity: ImpactSeverity
    description: str
    affected_components: List[str] = field(default_factory=list)


@dataclass
class Recommendations:
    immediate: List[str] = field(default_factory=list)
    short_term: List[str] = field(default_factory=list)
    long_term: List[str] = field(default_factory=list)


@dataclass
class PredictiveInsight:
    type: InsightType
    time_horizon: TimeHorizon
    prediction: Prediction
    impact: Impact
    recommendations: Recommendations

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "time_horizon": self.time_horizon.value,
            "prediction": {
                "metric": self.prediction.metric,
                "current_value": round(self.prediction.current_value, 4),
                "predicted_value": round(self.prediction.predicted_value, 4),
                "confidence": round(self.prediction.confidence, 4),
                "change_rate": round(self.prediction.change_rate, 4),
                "factors": list(self.prediction.factors),
            },
            "impact": {
                "severity": self.impact.severity.value,
                "description": self.impact.description,
                "affected_components": list(self.impact.affected_components),
            },
            "recommendations": {
                "immediate": list(self.recommendations.immediate),
                "short_term": list(self.recommendations.short_term),
                "long_term": list(self.recommendations.long_term),
            },
        }
