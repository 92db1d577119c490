"""
Anomaly Detection
Recent-vs-historical z-score over the tail of a metric history.

Update: Scheduler evaluation pass
Use: Alerting on sudden shifts that static thresholds miss

Formula:
    recent     = last 5 samples
    historical = the 15 samples before them
    z = |mean(recent) - mean(historical)| / std(historical)   (population std)
"""

import math
from typing import Optional, Sequence, Union

import numpy as np

from perfwatch.alerts import Alert, AlertManager, AlertType
from perfwatch.alerts.recommendations import anomaly_recommendations
from perfwatch.core.models import MetricSample

from .models import AnomalyResult


def _as_values(history: Sequence[Union[MetricSample, float]]) -> np.ndarray:
    return np.array(
        [h.value if isinstance(h, MetricSample) else float(h) for h in history],
        dtype=float,
    )


class AnomalyDetector:
    def __init__(
        self,
        alerts: AlertManager,
        min_history: int = 20,
        recent_window: int = 5,
        warning_z: float = 2.5,
        critical_z: float = 3.0,
    ):
        self._alerts = alerts
        self.min_history = min_history
        self.recent_window = recent_window
        self.warning_z = warning_z
        self.critical_z = critical_z

    def score(self, name: str, history: Sequence[Union[MetricSample, float]]) -> Optional[AnomalyResult]:
        """
        Compute the z-score for the tail of `history` without raising alerts.

        Returns None when there is not enough history.
        """
        values = _as_values(history)
        if len(values) < self.min_history:
            return None

        window = values[-self.min_history:]
        recent = window[-self.recent_window:]
        historical = window[:-self.recent_window]

        recent_avg = float(np.mean(recent))
        historical_avg = float(np.mean(historical))
        historical_std = float(np.std(historical))
        deviation = abs(recent_avg - historical_avg)

        if historical_std > 0:
            z = deviation / historical_std
        elif math.isclose(recent_avg, historical_avg, rel_tol=1e-12, abs_tol=1e-12):
            z = 0.0
        else:
            z = math.inf

        severity = None
        if z > self.critical_z:
            severity = "critical"
        elif z > self.warning_z:
            severity = "warning"

        return AnomalyResult(
            metric=name,
            z_score=z,
            recent_avg=recent_avg,
            historical_avg=historical_avg,
            historical_std=historical_std,
            severity=severity,
        )

    def detect_anomaly(self, name: str, history: Sequence[Union[MetricSample, float]]) -> Optional[Alert]:
        """Score the history and open an anomaly alert when it fires (deduplicated)"""
        result = self.score(name, history)
        if result is None or not result.is_anomaly:
            return None

        z_text = f"{result.z_score:.2f}" if math.isfinite(result.z_score) else "inf"
        return self._alerts.upsert(
            name,
            AlertType.ANOMALY,
            result.severity,
            result.recent_avg,
            result.historical_avg,
            context={
                "z_score": result.z_score,
                "historical_avg": result.historical_avg,
                "historical_std": result.historical_std,
                "recent_avg": result.recent_avg,
            },
            recommendations=anomaly_recommendations(name),
            description=f"{name} showing unusual behavior (z-score: {z_text})",
        )
