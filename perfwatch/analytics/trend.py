"""
Trend Analysis
Least-squares slope and R² over the most recent samples.

Update: Scheduler evaluation pass, or on request
Use: Degradation alerts, trend reports, predictive insights

The regression uses sample index (0..n-1) as x, which assumes roughly
uniform sampling intervals.
"""

from typing import Optional, Sequence, Union

import numpy as np
from scipy import stats

from perfwatch.alerts import Alert, AlertManager, AlertType
from perfwatch.alerts.recommendations import trend_recommendations
from perfwatch.core.models import MetricSample, Polarity

from .models import TrendDirection, TrendResult
from .thresholds import ThresholdRegistry


class TrendAnalyzer:
    """
    Classifies the recent direction of a metric.

    Direction comes from the metric's registered polarity:
    a rising higher_is_better metric is improving, a rising
    higher_is_worse metric is degrading.

    Usage:
        analyzer = TrendAnalyzer(registry, alerts)
        result = analyzer.analyze_trend("response_time", history, "1h")
        analyzer.check_trend("response_time", history)  # may open a trend alert
    """

    def __init__(
        self,
        registry: ThresholdRegistry,
        alerts: AlertManager,
        window: int = 10,
        min_history: int = 5,
        stable_pct: float = 5.0,
        alert_confidence: float = 0.8,
        critical_pct: float = 50.0,
    ):
        self._registry = registry
        self._alerts = alerts
        self.window = window
        self.min_history = min_history
        self.stable_pct = stable_pct
        self.alert_confidence = alert_confidence
        self.critical_pct = critical_pct

    def analyze_trend(
        self,
        name: str,
        history: Sequence[Union[MetricSample, float]],
        timeframe: str = "1h",
    ) -> Optional[TrendResult]:
        if len(history) < self.min_history:
            return None

        values = np.array(
            [h.value if isinstance(h, MetricSample) else float(h) for h in list(history)[-self.window:]],
            dtype=float,
        )
        n = len(values)
        x = np.arange(n, dtype=float)

        fit = stats.linregress(x, values)
        slope = float(fit.slope)
        mean = float(np.mean(values))
        change_rate = (slope / mean) * 100 if mean != 0 else 0.0

        # linregress reports r = 0 for a flat series, so confidence is 0 there
        confidence = float(np.clip(fit.rvalue ** 2, 0.0, 1.0))

        if abs(change_rate) < self.stable_pct:
            trend = TrendDirection.STABLE
        else:
            rising = change_rate > 0
            higher_is_better = self._registry.polarity(name) == Polarity.HIGHER_IS_BETTER
            trend = TrendDirection.IMPROVING if rising == higher_is_better else TrendDirection.DEGRADING

        current = float(values[-1])
        return TrendResult(
            metric=name,
            timeframe=timeframe,
            trend=trend,
            confidence=confidence,
            current_value=current,
            projected_value=current + slope,
            change_rate=float(change_rate),
            slope=slope,
            samples=n,
        )

    def check_trend(self, name: str, history: Sequence[Union[MetricSample, float]]) -> Optional[Alert]:
        """Open a trend alert for a confident degrading trend (deduplicated)"""
        result = self.analyze_trend(name, history, "1h")
        if result is None or result.trend != TrendDirection.DEGRADING:
            return None
        if result.confidence <= self.alert_confidence:
            return None

        severity = "critical" if abs(result.change_rate) > self.critical_pct else "warning"
        return self._alerts.upsert(
            name,
            AlertType.TREND,
            severity,
            result.current_value,
            result.projected_value,
            context={"trend": result.to_dict()},
            recommendations=trend_recommendations(name, result.trend.value),
            description=f"{name} showing degrading trend ({result.change_rate:.2f}% change rate)",
        )
