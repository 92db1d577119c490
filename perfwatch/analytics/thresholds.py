"""
Threshold Evaluation
Static warning/critical boundary checks, plus the per-metric profile registry.

Update: Every recorded sample
Use: Immediate breach alerts
"""

import threading
from typing import Dict, List, Optional

import structlog

from perfwatch.alerts import Alert, AlertManager, AlertType
from perfwatch.alerts.recommendations import threshold_recommendations
from perfwatch.core.models import (
    InsightType,
    MetricProfile,
    MetricSample,
    Polarity,
    Threshold,
)

logger = structlog.get_logger(__name__)


class ThresholdRegistry:
    """
    Thresholds and metric profiles keyed by metric name.

    Polarity lives in the profile so that metrics without a threshold
    can still declare which direction is bad.

    Usage:
        registry = ThresholdRegistry()
        registry.set_threshold("response_time", warning=2000, critical=5000, unit="ms")
        registry.set_profile("ai_confidence", polarity="higher_is_better", insight_type="quality")
    """

    def __init__(self):
        self._thresholds: Dict[str, Threshold] = {}
        self._profiles: Dict[str, MetricProfile] = {}
        self._lock = threading.RLock()

    def set_threshold(
        self,
        metric: str,
        warning: float,
        critical: float,
        unit: str = "",
        polarity: Optional[Polarity] = None,
        insight_type: Optional[InsightType] = None,
    ) -> Threshold:
        """
        Register or replace a threshold.

        Raises:
            pydantic.ValidationError: critical on the wrong side of warning
        """
        with self._lock:
            if polarity is None:
                polarity = self.polarity(metric)
            threshold = Threshold(
                metric=metric,
                warning=warning,
                critical=critical,
                unit=unit,
                polarity=polarity,
            )
            self._thresholds[metric] = threshold
            self.set_profile(metric, polarity=threshold.polarity, insight_type=insight_type)

        logger.info(
            "threshold_configured",
            metric=metric,
            warning=warning,
            critical=critical,
            polarity=threshold.polarity.value,
        )
        return threshold

    def set_profile(
        self,
        metric: str,
        polarity: Optional[Polarity] = None,
        insight_type: Optional[InsightType] = None,
    ) -> MetricProfile:
        with self._lock:
            current = self._profiles.get(metric, MetricProfile())
            profile = MetricProfile(
                polarity=polarity if polarity is not None else current.polarity,
                insight_type=insight_type if insight_type is not None else current.insight_type,
            )
            threshold = self._thresholds.get(metric)
            if threshold is not None and threshold.polarity != profile.polarity:
                # Re-validate the boundary ordering under the new polarity
                self._thresholds[metric] = Threshold(
                    **{**threshold.model_dump(), "polarity": profile.polarity}
                )
            self._profiles[metric] = profile
            return profile

    def get(self, metric: str) -> Optional[Threshold]:
        with self._lock:
            return self._thresholds.get(metric)

    def profile(self, metric: str) -> MetricProfile:
        with self._lock:
            return self._profiles.get(metric, MetricProfile())

    def polarity(self, metric: str) -> Polarity:
        return self.profile(metric).polarity

    def insight_type(self, metric: str) -> InsightType:
        return self.profile(metric).insight_type

    def remove(self, metric: str) -> bool:
        with self._lock:
            return self._thresholds.pop(metric, None) is not None

    def all(self) -> List[Threshold]:
        with self._lock:
            return list(self._thresholds.values())

    def __len__(self) -> int:
        return len(self._thresholds)


class ThresholdEvaluator:
    """Classify a sample against its registered threshold and raise an alert"""

    def __init__(self, registry: ThresholdRegistry, alerts: AlertManager):
        self._registry = registry
        self._alerts = alerts

    def classify(self, sample: MetricSample) -> Optional[tuple]:
        threshold = self._registry.get(sample.name)
        if threshold is None:
            return None
        return threshold.classify(sample.value)

    def evaluate(self, sample: MetricSample) -> Optional[Alert]:
        """No-op when the metric has no threshold or the value is within bounds"""
        classified = self.classify(sample)
        if classified is None:
            return None

        severity, boundary = classified
        unit = sample.unit
        return self._alerts.upsert(
            sample.name,
            AlertType.THRESHOLD,
            severity,
            sample.value,
            boundary,
            context=dict(sample.context),
            recommendations=threshold_recommendations(sample.name, severity),
            description=(
                f"{sample.name} value {sample.value:g}{unit} crosses "
                f"{severity} threshold of {boundary:g}{unit}"
            ),
        )
