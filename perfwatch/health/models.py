"""
Health Models
Component readings, scoring rules, and health summaries.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from perfwatch.core.models import utcnow


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


HEALTHY_SCORE = 80.0
DEGRADED_SCORE = 60.0


def status_for_score(score: float) -> HealthStatus:
    """Tiers: >=80 healthy, 60-79 degraded, <60 unhealthy"""
    if score >= HEALTHY_SCORE:
        return HealthStatus.HEALTHY
    if score >= DEGRADED_SCORE:
        return HealthStatus.DEGRADED
    return HealthStatus.UNHEALTHY


@dataclass
class ProbeReading:
    """
    What a component probe reports for its recent window.

    Missing figures are None; rules skip what they cannot judge.
    """
    latency_ms: Optional[float] = None
    error_rate: Optional[float] = None
    throughput: Optional[float] = None
    availability: Optional[float] = None
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class HealthRule:
    """
    A score penalty applied when `predicate(reading)` holds.

    Example:
        HealthRule("high_latency", lambda r: (r.latency_ms or 0) > 2000, 20,
                   "Latency above 2000ms")
    """
    name: str
    predicate: Callable[[ProbeReading], bool]
    penalty: float
    description: str = ""


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus
    score: float
    latency: Optional[float] = None
    error_rate: Optional[float] = None
    throughput: Optional[float] = None
    availability: Optional[float] = None
    last_checked: datetime = field(default_factory=utcnow)
    issues: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "score": round(self.score, 1),
            "latency": self.latency,
            "error_rate": self.error_rate,
            "throughput": self.throughput,
            "availability": self.availability,
            "last_checked": self.last_checked.isoformat(),
            "issues": list(self.issues),
            "error": self.error,
        }


@dataclass
class SystemHealth:
    overall: HealthStatus
    score: float
    components: Dict[str, ComponentHealth]
    recommendations: List[str]
    critical_issues: List[Any]
    checked_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall.value,
            "score": round(self.score, 1),
            "components": {name: c.to_dict() for name, c in self.components.items()},
            "recommendations": list(self.recommendations),
            "critical_issues": [a.to_dict() for a in self.critical_issues],
            "checked_at": self.checked_at.isoformat(),
        }
