"""
Predictive Insights
Projects confident trends forward over a time horizon.

Formula:
    predicted = current + (change_rate / 100) * current * hours(horizon)
"""

from typing import Callable, Dict, List, Optional, Sequence

import structlog

from perfwatch.analytics import ThresholdRegistry, TrendAnalyzer, TrendDirection, TrendResult
from perfwatch.core.models import InsightType, MetricSample

from .models import (
    Impact,
    ImpactSeverity,
    Prediction,
    PredictiveInsight,
    Recommendations,
    TimeHorizon,
)

logger = structlog.get_logger(__name__)

CRITICAL_CHANGE_PCT = 50.0
HIGH_CHANGE_PCT = 25.0

RECOMMENDATION_TEMPLATES: Dict[InsightType, Dict[str, List[str]]] = {
    InsightType.PERFORMANCE: {
        "immediate": ["Monitor {metric} closely"],
        "short_term": ["Profile the slowest operations behind {metric}"],
        "long_term": ["Scale infrastructure ahead of projected load"],
    },
    InsightType.CAPACITY: {
        "immediate": ["Monitor capacity metrics"],
        "short_term": ["Plan scaling activities for {metric}"],
        "long_term": ["Implement auto-scaling"],
    },
    InsightType.COST: {
        "immediate": ["Review cost optimization opportunities"],
        "short_term": ["Implement caching improvements"],
        "long_term": ["Optimize model selection"],
    },
    InsightType.QUALITY: {
        "immediate": ["Review recent low-quality results for {metric}"],
        "short_term": ["Tune prompts and retrieval settings"],
        "long_term": ["Build an evaluation set to track {metric}"],
    },
}


def classify_impact(change_rate: float) -> ImpactSeverity:
    magnitude = abs(change_rate)
    if magnitude > CRITICAL_CHANGE_PCT:
        return ImpactSeverity.CRITICAL
    if magnitude > HIGH_CHANGE_PCT:
        return ImpactSeverity.HIGH
    return ImpactSeverity.MEDIUM


class PredictiveInsightGenerator:
    def __init__(
        self,
        analyzer: TrendAnalyzer,
        registry: ThresholdRegistry,
        min_history: int = 10,
        min_confidence: float = 0.6,
        affected_components: Optional[Callable[[str], List[str]]] = None,
    ):
        self._analyzer = analyzer
        self._registry = registry
        self.min_history = min_history
        self.min_confidence = min_confidence
        self._affected_components = affected_components or (lambda metric: [])

    def generate_insights(
        self,
        histories: Dict[str, Sequence[MetricSample]],
        time_horizon="24h",
    ) -> List[PredictiveInsight]:
        """
        One insight per metric with enough history and a confident trend.

        Raises:
            UnknownHorizonError: horizon not one of 1h, 24h, 7d, 30d
        """
        horizon = TimeHorizon.parse(time_horizon)
        insights = []

        for metric, history in histories.items():
            if len(history) < self.min_history:
                continue
            trend = self._analyzer.analyze_trend(metric, history, horizon.value)
            if trend is None or trend.confidence < self.min_confidence:
                continue
            insights.append(self._build(trend, horizon))

        logger.info(
            "predictive_insights_generated",
            time_horizon=horizon.value,
            metrics_analyzed=len(histories),
            insights=len(insights),
        )
        return insights

    def _build(self, trend: TrendResult, horizon: TimeHorizon) -> PredictiveInsight:
        current = trend.current_value
        predicted = current + (trend.change_rate / 100) * current * horizon.multiplier
        severity = classify_impact(trend.change_rate)
        insight_type = self._registry.insight_type(trend.metric)

        affected = list(self._affected_components(trend.metric))
        if severity == ImpactSeverity.CRITICAL and "user_experience" not in affected:
            affected.append("user_experience")

        direction = {
            TrendDirection.IMPROVING: "improvement",
            TrendDirection.DEGRADING: "degradation",
        }.get(trend.trend, "change")
        descriptions = {
            ImpactSeverity.CRITICAL: f"Significant {insight_type.value} {direction} predicted for {trend.metric}",
            ImpactSeverity.HIGH: f"Notable {insight_type.value} {direction} predicted for {trend.metric}",
            ImpactSeverity.MEDIUM: f"Moderate {insight_type.value} {direction} predicted for {trend.metric}",
        }

        template = RECOMMENDATION_TEMPLATES[insight_type]

        def fill(items: List[str]) -> List[str]:
            return [item.format(metric=trend.metric) for item in items]

        return PredictiveInsight(
            type=insight_type,
            time_horizon=horizon,
            prediction=Prediction(
                metric=trend.metric,
                current_value=current,
                predicted_value=predicted,
                confidence=trend.confidence,
                change_rate=trend.change_rate,
                factors=["historical_trend", f"{trend.trend.value}_direction"],
            ),
            impact=Impact(
                severity=severity,
                description=descriptions[severity],
                affected_components=affected,
            ),
            recommendations=Recommendations(
                immediate=fill(template["immediate"]),
                short_term=fill(template["short_term"]),
                long_term=fill(template["long_term"]),
            ),
        )
