"""Tests for metric models, threshold validation and timeframe parsing."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from perfwatch.core import MetricRecord, MetricSample, Polarity, Threshold, parse_timeframe, to_metric_sample
from perfwatch.exceptions import UnknownHorizonError


class TestMetricSample:
    """MetricSample normalization and validation."""

    def test_naive_timestamp_becomes_utc(self):
        sample = MetricSample(name="response_time", value=1, timestamp=datetime(2024, 1, 1, 12, 0))
        assert sample.timestamp.tzinfo is not None
        assert sample.timestamp.utcoffset() == timedelta(0)

    def test_epoch_seconds_and_milliseconds(self):
        seconds = MetricSample(name="m", value=1, timestamp=1_700_000_000)
        millis = MetricSample(name="m", value=1, timestamp=1_700_000_000_000)
        assert seconds.timestamp == millis.timestamp
        assert millis.epoch_ms == 1_700_000_000_000

    def test_iso_string_with_z_suffix(self):
        sample = MetricSample(name="m", value=1, timestamp="2024-01-01T00:00:00Z")
        assert sample.timestamp == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_tags_are_stringified(self):
        sample = MetricSample(name="m", value=1, tags={"status": 500})
        assert sample.tags == {"status": "500"}

    @pytest.mark.parametrize("value", [float("nan"), float("inf")])
    def test_non_finite_value_rejected(self, value):
        with pytest.raises(ValidationError):
            MetricSample(name="m", value=value)

    def test_empty_name_rejected(self):
        with pytest.raises(ValidationError):
            MetricSample(name="", value=1)

    def test_samples_are_immutable(self):
        sample = MetricSample(name="m", value=1)
        with pytest.raises(ValidationError):
            sample.value = 2

    def test_to_metric_sample_accepts_field_variants(self):
        sample = to_metric_sample({"metric": "latency", "value": "12.5", "labels": {"host": "a"}, "ts": 1_700_000_000})
        assert sample.name == "latency"
        assert sample.value == 12.5
        assert sample.tags == {"host": "a"}


class TestThreshold:
    """Threshold ordering and inclusive classification."""

    def test_critical_boundary_is_inclusive(self):
        threshold = Threshold(metric="response_time", warning=2000, critical=5000)
        assert threshold.classify(5000) == ("critical", 5000)
        assert threshold.classify(2000) == ("warning", 2000)
        assert threshold.classify(1999.9) is None

    def test_higher_is_better_classifies_downward(self):
        threshold = Threshold(metric="cache_hit_rate", warning=0.6, critical=0.4, polarity=Polarity.HIGHER_IS_BETTER)
        assert threshold.classify(0.4) == ("critical", 0.4)
        assert threshold.classify(0.5) == ("warning", 0.6)
        assert threshold.classify(0.9) is None

    def test_critical_below_warning_rejected(self):
        with pytest.raises(ValidationError):
            Threshold(metric="response_time", warning=5000, critical=2000)

    def test_critical_above_warning_rejected_for_higher_is_better(self):
        with pytest.raises(ValidationError):
            Threshold(metric="throughput", warning=5, critical=10, polarity=Polarity.HIGHER_IS_BETTER)

    def test_equal_boundaries_allowed(self):
        threshold = Threshold(metric="m", warning=10, critical=10)
        assert threshold.classify(10) == ("critical", 10)


class TestMetricRecord:
    def test_from_sample_carries_severity_and_target(self):
        sample = MetricSample(
            name="response_time",
            value=6000,
            unit="ms",
            tags={"category": "api"},
            context={"user_id": "u-1"},
        )
        threshold = Threshold(metric="response_time", warning=2000, critical=5000)

        record = MetricRecord.from_sample(sample, threshold, organization_id="org-1")

        assert record.severity == "critical"
        assert record.target == 2000
        assert record.category == "api"
        assert record.organization_id == "org-1"
        assert record.user_id == "u-1"
        assert record.id.startswith("metric_")

    def test_from_sample_without_threshold(self):
        record = MetricRecord.from_sample(MetricSample(name="custom", value=1))
        assert record.severity == "normal"
        assert record.target is None
        assert record.category == "custom"


class TestParseTimeframe:
    @pytest.mark.parametrize("value,expected", [
        ("30s", timedelta(seconds=30)),
        ("5m", timedelta(minutes=5)),
        ("24h", timedelta(hours=24)),
        ("7d", timedelta(days=7)),
    ])
    def test_valid(self, value, expected):
        assert parse_timeframe(value) == expected

    @pytest.mark.parametrize("value", ["", "1w", "h", "-1h", "abc"])
    def test_invalid_raises_value_error(self, value):
        with pytest.raises(ValueError):
            parse_timeframe(value)

    def test_error_type(self):
        with pytest.raises(UnknownHorizonError) as exc:
            parse_timeframe("1y")
        assert exc.value.value == "1y"
