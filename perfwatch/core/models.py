"""
Domain Models
The SINGLE SOURCE OF TRUTH for metric data formats.

After normalization, the engine only sees these types.
"""

import re
import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from perfwatch.exceptions import UnknownHorizonError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Enums
# =============================================================================

class Polarity(str, Enum):
    """Which direction of change is bad for a metric"""
    HIGHER_IS_WORSE = "higher_is_worse"
    HIGHER_IS_BETTER = "higher_is_better"


class InsightType(str, Enum):
    """Category a metric belongs to for predictive insights"""
    PERFORMANCE = "performance"
    CAPACITY = "capacity"
    COST = "cost"
    QUALITY = "quality"


class MetricCategory(str, Enum):
    """Conventional `category` tag values set by the domain wrappers"""
    API = "api"
    AI = "ai"
    DATABASE = "database"
    CACHE = "cache"
    SYSTEM = "system"
    CUSTOM = "custom"


# =============================================================================
# MetricSample: The Core Data Contract
# =============================================================================

class MetricSample(BaseModel):
    """
    A single recorded metric observation.

    This is THE internal representation. Producers never hand the store
    raw dicts or request payloads, only MetricSamples.

    Fields:
        name: Metric name (response_time, error_rate, ...)
        value: Finite float value
        unit: Free-form unit label (ms, ratio, rpm)
        timestamp: Timezone-aware UTC datetime
        tags: Dimension labels (string → string)
        context: Producer-supplied key/values (organization_id, user_id, ...)
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, max_length=200)
    value: float = Field(..., allow_inf_nan=False)
    unit: str = ""
    timestamp: datetime = Field(default_factory=utcnow)
    tags: Dict[str, str] = Field(default_factory=dict)
    context: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_timestamp(cls, v):
        """Handle datetimes, ISO strings, and unix seconds/milliseconds"""
        if isinstance(v, str):
            v = datetime.fromisoformat(v.replace("Z", "+00:00"))
        elif isinstance(v, (int, float)):
            v = datetime.fromtimestamp(v / 1000 if v > 1e12 else v, tz=timezone.utc)
        if isinstance(v, datetime) and v.tzinfo is None:
            v = v.replace(tzinfo=timezone.utc)
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def stringify_tags(cls, v):
        if v is None:
            return {}
        if isinstance(v, dict):
            return {str(k): str(val) for k, val in v.items()}
        return v

    @property
    def epoch_ms(self) -> int:
        return int(self.timestamp.timestamp() * 1000)


class MetricReading(BaseModel):
    """A value produced by a collector; becomes a MetricSample when recorded"""
    name: str
    value: float
    unit: str = ""
    tags: Dict[str, str] = Field(default_factory=dict)


# =============================================================================
# Thresholds & Profiles
# =============================================================================

class Threshold(BaseModel):
    """
    Static warning/critical boundary for a metric.

    For higher_is_worse metrics critical must be >= warning;
    for higher_is_better metrics critical must be <= warning.
    """
    metric: str = Field(..., min_length=1)
    warning: float = Field(..., allow_inf_nan=False)
    critical: float = Field(..., allow_inf_nan=False)
    unit: str = ""
    polarity: Polarity = Polarity.HIGHER_IS_WORSE

    @model_validator(mode="after")
    def check_ordering(self):
        if self.polarity == Polarity.HIGHER_IS_WORSE and self.critical < self.warning:
            raise ValueError(
                f"critical ({self.critical}) must be >= warning ({self.warning}) for {self.metric}"
            )
        if self.polarity == Polarity.HIGHER_IS_BETTER and self.critical > self.warning:
            raise ValueError(
                f"critical ({self.critical}) must be <= warning ({self.warning}) "
                f"for higher-is-better metric {self.metric}"
            )
        return self

    def classify(self, value: float) -> Optional[tuple]:
        """Return (severity, boundary) for value, or None. Boundaries are inclusive."""
        if self.polarity == Polarity.HIGHER_IS_WORSE:
            if value >= self.critical:
                return "critical", self.critical
            if value >= self.warning:
                return "warning", self.warning
        else:
            if value <= self.critical:
                return "critical", self.critical
            if value <= self.warning:
                return "warning", self.warning
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric,
            "warning": self.warning,
            "critical": self.critical,
            "unit": self.unit,
            "polarity": self.polarity.value,
        }


class MetricProfile(BaseModel):
    """Per-metric interpretation attributes consulted by the generic analyzers"""
    polarity: Polarity = Polarity.HIGHER_IS_WORSE
    insight_type: InsightType = InsightType.PERFORMANCE


# =============================================================================
# Persistence Record
# =============================================================================

class MetricRecord(BaseModel):
    """Row shape appended to the optional backing store"""
    id: str = Field(default_factory=lambda: f"metric_{uuid.uuid4().hex[:12]}")
    name: str
    value: float
    target: Optional[float] = None
    unit: str = ""
    timestamp: datetime
    organization_id: Optional[str] = None
    user_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    category: str = MetricCategory.CUSTOM.value
    severity: str = "normal"

    @classmethod
    def from_sample(
        cls,
        sample: MetricSample,
        threshold: Optional[Threshold] = None,
        organization_id: Optional[str] = None,
    ) -> "MetricRecord":
        severity = "normal"
        if threshold is not None:
            classified = threshold.classify(sample.value)
            if classified:
                severity = classified[0]
        return cls(
            name=sample.name,
            value=sample.value,
            target=threshold.warning if threshold else None,
            unit=sample.unit,
            timestamp=sample.timestamp,
            organization_id=sample.context.get("organization_id", organization_id),
            user_id=sample.context.get("user_id"),
            metadata={"tags": sample.tags, **sample.context},
            category=sample.tags.get("category", MetricCategory.CUSTOM.value),
            severity=severity,
        )


# =============================================================================
# Converters: External → Internal
# =============================================================================

_TIMEFRAME_RE = re.compile(r"^\s*(\d+)\s*([smhd])\s*$")
_TIMEFRAME_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


def parse_timeframe(value: str) -> timedelta:
    """
    Convert "30s", "5m", "1h", "24h", "7d" into a timedelta.

    Raises:
        UnknownHorizonError: for anything that does not match <int><s|m|h|d>
    """
    match = _TIMEFRAME_RE.match(value or "")
    if not match:
        raise UnknownHorizonError(value, ["<n>s", "<n>m", "<n>h", "<n>d"])
    amount, unit = match.groups()
    return timedelta(**{_TIMEFRAME_UNITS[unit]: int(amount)})


def to_metric_sample(data: dict) -> MetricSample:
    """
    Convert an external payload into a MetricSample.

    This is the NORMALIZATION POINT for HTTP and collector payloads.

    Handles:
    - name/metric field variants
    - timestamp/ts/time field variants
    - tags/labels field variants
    """
    name = data.get("name") or data.get("metric")
    ts = data.get("timestamp") or data.get("ts") or data.get("time")
    tags = data.get("tags") or data.get("labels") or {}

    kwargs = dict(
        name=name,
        value=float(data["value"]),
        unit=data.get("unit", "") or "",
        tags=tags,
        context=data.get("context") or {},
    )
    if ts is not None:
        kwargs["timestamp"] = ts
    return MetricSample(**kwargs)
