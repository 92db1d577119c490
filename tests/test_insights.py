"""Tests for predictive insight generation."""

import pytest

from perfwatch.analytics import TrendAnalyzer
from perfwatch.core import InsightType, Polarity
from perfwatch.exceptions import UnknownHorizonError
from perfwatch.insights import ImpactSeverity, PredictiveInsightGenerator, TimeHorizon, classify_impact

from conftest import make_samples

pytestmark = pytest.mark.analytics


@pytest.fixture
def generator(registry, alerts):
    registry.set_profile("throughput", polarity=Polarity.HIGHER_IS_BETTER, insight_type=InsightType.CAPACITY)
    registry.set_profile("ai_tokens", insight_type=InsightType.COST)
    return PredictiveInsightGenerator(
        TrendAnalyzer(registry, alerts),
        registry,
        affected_components=lambda metric: ["api"] if metric == "response_time" else [],
    )


class TestHorizon:
    @pytest.mark.parametrize("value,hours", [("1h", 1), ("24h", 24), ("7d", 168), ("30d", 720)])
    def test_multipliers(self, value, hours):
        assert TimeHorizon.parse(value).multiplier == hours

    def test_unknown_horizon_raises_value_error(self, generator):
        with pytest.raises(ValueError):
            generator.generate_insights({}, "2w")
        with pytest.raises(UnknownHorizonError):
            TimeHorizon.parse("90m")


class TestImpact:
    @pytest.mark.parametrize("change_rate,severity", [
        (60, ImpactSeverity.CRITICAL),
        (-60, ImpactSeverity.CRITICAL),
        (30, ImpactSeverity.HIGH),
        (25, ImpactSeverity.MEDIUM),
        (5, ImpactSeverity.MEDIUM),
    ])
    def test_classify(self, change_rate, severity):
        assert classify_impact(change_rate) == severity


class TestGenerate:
    def test_projection_formula(self, generator):
        histories = {"response_time": make_samples("response_time", [100 + 10 * i for i in range(10)])}

        [insight] = generator.generate_insights(histories, "24h")

        # slope 10 over mean 145, last value 190
        change_rate = 10 / 145 * 100
        assert insight.prediction.change_rate == pytest.approx(change_rate)
        assert insight.prediction.current_value == 190
        assert insight.prediction.predicted_value == pytest.approx(190 + change_rate / 100 * 190 * 24)
        assert insight.prediction.confidence == pytest.approx(1.0)
        assert insight.type == InsightType.PERFORMANCE
        assert insight.impact.severity == ImpactSeverity.MEDIUM
        assert insight.impact.affected_components == ["api"]
        assert "degradation" in insight.impact.description

    def test_requires_ten_samples(self, generator):
        histories = {"response_time": make_samples("response_time", range(1, 10))}
        assert generator.generate_insights(histories) == []

    def test_low_confidence_trend_skipped(self, generator):
        noisy = [100, 400, 90, 500, 120, 450, 200, 380, 150, 600]
        assert generator.generate_insights({"response_time": make_samples("response_time", noisy)}) == []

    def test_insight_type_from_profile(self, generator):
        histories = {
            "throughput": make_samples("throughput", range(1, 11)),
            "ai_tokens": make_samples("ai_tokens", range(100, 1100, 100)),
        }
        insights = {i.prediction.metric: i for i in generator.generate_insights(histories, "1h")}

        assert insights["throughput"].type == InsightType.CAPACITY
        assert "improvement" in insights["throughput"].impact.description
        assert insights["ai_tokens"].type == InsightType.COST
        assert insights["ai_tokens"].recommendations.immediate == ["Review cost optimization opportunities"]

    def test_critical_impact_affects_user_experience(self, generator):
        # slope 1 over mean 1.5
        histories = {"response_time": make_samples("response_time", [i - 3 for i in range(10)])}

        [insight] = generator.generate_insights(histories)

        assert insight.impact.severity == ImpactSeverity.CRITICAL
        assert insight.impact.affected_components == ["api", "user_experience"]

    def test_serializes(self, generator):
        histories = {"response_time": make_samples("response_time", range(10, 20))}
        data = generator.generate_insights(histories, "7d")[0].to_dict()
        assert data["time_horizon"] == "7d"
        assert set(data["recommendations"]) == {"immediate", "short_term", "long_term"}
        assert "{metric}" not in " ".join(data["recommendations"]["immediate"])
