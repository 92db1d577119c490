"""
Monitor Configuration
Environment-driven settings for the monitoring engine.

Every field can be overridden with a PERFWATCH_ prefixed environment variable:

    PERFWATCH_TICK_INTERVAL_SECONDS=30
    PERFWATCH_PERSISTENCE_ENABLED=true
"""

from functools import lru_cache
from typing import Dict, Literal, Optional, Tuple

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ThresholdDefault(BaseModel):
    """A threshold registered at startup."""
    warning: float
    critical: float
    unit: str = ""
    polarity: Literal["higher_is_worse", "higher_is_better"] = "higher_is_worse"
    insight_type: Literal["performance", "capacity", "cost", "quality"] = "performance"


DEFAULT_THRESHOLDS: Dict[str, ThresholdDefault] = {
    "response_time": ThresholdDefault(warning=2000, critical=5000, unit="ms"),
    "error_rate": ThresholdDefault(warning=0.05, critical=0.1, unit="ratio", insight_type="quality"),
    "throughput": ThresholdDefault(
        warning=10, critical=5, unit="rpm", polarity="higher_is_better", insight_type="capacity"
    ),
    "cache_hit_rate": ThresholdDefault(
        warning=0.6, critical=0.4, unit="ratio", polarity="higher_is_better"
    ),
    "cost_per_request": ThresholdDefault(warning=0.1, critical=0.2, unit="usd", insight_type="cost"),
}

# Metrics with no default threshold that still need a polarity or insight category
DEFAULT_PROFILES: Dict[str, Tuple[str, str]] = {
    "ai_confidence": ("higher_is_better", "quality"),
    "ai_hallucination_score": ("higher_is_worse", "quality"),
    "ai_tokens": ("higher_is_worse", "cost"),
    "cpu_usage": ("higher_is_worse", "capacity"),
    "memory_usage": ("higher_is_worse", "capacity"),
}


class MonitorSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PERFWATCH_", extra="ignore")

    # Metric history
    history_capacity: int = Field(default=1000, ge=20)
    history_max_age_seconds: float = Field(default=24 * 3600, gt=0)

    # Scheduler
    tick_interval_seconds: float = Field(default=10.0, gt=0)
    alert_retention_seconds: float = Field(default=24 * 3600, gt=0)
    collector_timeout_seconds: float = Field(default=5.0, gt=0)

    # Health checks
    health_check_timeout_seconds: float = Field(default=3.0, gt=0)
    health_latency_limit_ms: float = 2000.0
    health_latency_penalty: float = 20.0
    health_error_rate_limit: float = 0.05
    health_error_rate_penalty: float = 30.0
    health_throughput_floor: float = 20.0
    health_throughput_penalty: float = 15.0
    health_probe_window: int = Field(default=10, ge=1)
    register_default_component: bool = True

    # Anomaly detection
    anomaly_min_history: int = Field(default=20, ge=2)
    anomaly_recent_window: int = Field(default=5, ge=1)
    anomaly_warning_z: float = 2.5
    anomaly_critical_z: float = 3.0

    # Trend analysis
    trend_window: int = Field(default=10, ge=2)
    trend_min_history: int = Field(default=5, ge=2)
    trend_stable_pct: float = 5.0
    trend_alert_confidence: float = 0.8
    trend_critical_pct: float = 50.0

    # Predictive insights
    insight_min_history: int = Field(default=10, ge=2)
    insight_min_confidence: float = 0.6

    # Thresholds
    load_default_thresholds: bool = True

    # Persistence (best effort)
    persistence_enabled: bool = False
    persistence_path: str = "data/perfwatch.db"
    persistence_queue_size: int = Field(default=10000, ge=1)

    # Export
    prometheus_prefix: str = "perfwatch"
    export_window_seconds: float = Field(default=3600, gt=0)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["console", "json"] = "console"

    organization_id: Optional[str] = None


@lru_cache
def get_settings() -> MonitorSettings:
    return MonitorSettings()
