"""
Alert Models
Data structures for alert types, severities, and alert records.
"""

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from perfwatch.core.models import utcnow


class AlertType(str, Enum):
    """What kind of detector raised the alert"""
    THRESHOLD = "threshold"
    ANOMALY = "anomaly"
    TREND = "trend"
    PREDICTION = "prediction"


class AlertSeverity(str, Enum):
    """Alert severity levels"""
    WARNING = "warning"
    CRITICAL = "critical"


def _finite(value: Optional[float]) -> Optional[float]:
    if value is None or not math.isfinite(value):
        return None
    return round(value, 4)


def _jsonable(value: Any) -> Any:
    if isinstance(value, float):
        return _finite(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass
class Alert:
    """
    A deduplicated, lifecycle-tracked alert.

    At most one unresolved alert exists per (metric, type).
    Lifecycle: created (resolved=False) → resolved (terminal).
    """
    id: str
    metric: str
    type: AlertType
    severity: AlertSeverity
    value: float
    reference: Optional[float] = None
    title: str = ""
    description: str = ""
    created_at: datetime = field(default_factory=utcnow)
    resolved: bool = False
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)
    recommendations: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.type = AlertType(self.type)
        self.severity = AlertSeverity(self.severity)
        if not self.id:
            self.id = f"{self.type.value}_{uuid.uuid4().hex[:12]}"
        if not self.title:
            self.title = _default_title(self.metric, self.type)

    @property
    def key(self) -> tuple:
        """Dedup key"""
        return (self.metric, self.type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "metric": self.metric,
            "type": self.type.value,
            "severity": self.severity.value,
            "value": _finite(self.value),
            "reference": _finite(self.reference),
            "title": self.title,
            "description": self.description,
            "created_at": self.created_at.isoformat(),
            "resolved": self.resolved,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "resolved_by": self.resolved_by,
            "context": _jsonable(self.context),
            "recommendations": list(self.recommendations),
        }


def _default_title(metric: str, alert_type: AlertType) -> str:
    if alert_type == AlertType.THRESHOLD:
        return f"{metric} threshold exceeded"
    if alert_type == AlertType.ANOMALY:
        return f"Anomaly detected in {metric}"
    if alert_type == AlertType.TREND:
        return f"Degrading trend in {metric}"
    return f"Predicted issue in {metric}"
