"""End-to-end tests for PerformanceMonitor."""

import asyncio
import random
import threading
from datetime import timedelta

import pytest

from perfwatch.alerts import AlertType
from perfwatch.analytics import TrendDirection
from perfwatch.config import MonitorSettings
from perfwatch.core import MetricReading, PerformanceMonitor, Polarity, utcnow
from perfwatch.health import HealthStatus, ProbeReading


def _alerts_of(monitor, metric, alert_type):
    return [a for a in monitor.get_active_alerts() if a.metric == metric and a.type == alert_type]


class TestResponseTimeBurst:
    """Baseline followed by a burst over the critical threshold."""

    def _feed(self, monitor):
        rng = random.Random(42)
        now = utcnow() - timedelta(minutes=5)
        for i in range(20):
            monitor.record_metric("response_time", 800 + rng.uniform(-50, 50), "ms", timestamp=now + timedelta(seconds=i))
        for i in range(5):
            monitor.record_metric("response_time", 6000, "ms", timestamp=now + timedelta(seconds=20 + i))

    def test_exactly_one_critical_threshold_alert(self, monitor):
        self._feed(monitor)
        monitor.evaluate()
        monitor.evaluate()

        threshold_alerts = _alerts_of(monitor, "response_time", AlertType.THRESHOLD)
        assert len(threshold_alerts) == 1
        assert threshold_alerts[0].severity.value == "critical"

    def test_at_most_one_anomaly_alert(self, monitor):
        self._feed(monitor)
        for _ in range(3):
            monitor.evaluate()

        assert len(_alerts_of(monitor, "response_time", AlertType.ANOMALY)) <= 1

    def test_never_duplicate_alerts_per_type(self, monitor):
        self._feed(monitor)
        monitor.evaluate()
        self._feed(monitor)
        monitor.evaluate()

        keys = [a.key for a in monitor.get_active_alerts()]
        assert len(keys) == len(set(keys))


class TestRecording:
    def test_record_metric_never_raises(self, monitor):
        assert monitor.record_metric("response_time", float("nan")) is None
        assert monitor.record_metric("", 1) is None
        assert monitor.stats()["rejected"] == 2

    def test_threshold_checked_on_record(self, monitor):
        monitor.record_metric("error_rate", 0.2)
        [alert] = monitor.get_active_alerts()
        assert alert.metric == "error_rate"
        assert alert.severity.value == "critical"

    def test_api_response_wrapper(self, monitor):
        monitor.record_api_response("/orders", "post", 503, 120.0)

        [sample] = monitor.get_metrics("response_time")
        assert sample.tags["operation"] == "POST /orders"
        assert sample.tags["status"] == "503"
        assert sample.tags["category"] == "api"
        [error] = monitor.get_metrics("api_errors")
        assert error.context["error"] == "HTTP 503"

    def test_client_errors_are_not_server_errors(self, monitor):
        monitor.record_api_response("/orders", "GET", 404, 12.0)
        assert monitor.get_metrics("api_errors") == []

    def test_ai_operation_wrapper(self, monitor):
        monitor.record_ai_operation(
            "answer", 1500, confidence=0.9, tokens=420, escalated=True, hallucination_score=0.05
        )

        assert monitor.get_metrics("ai_response_time")[0].tags["escalated"] == "true"
        assert monitor.get_metrics("ai_confidence")[0].value == 0.9
        assert monitor.get_metrics("ai_tokens")[0].value == 420
        assert monitor.get_metrics("ai_hallucination_score")[0].value == 0.05
        assert monitor.get_metrics("ai_errors") == []

    def test_database_query_wrapper(self, monitor):
        monitor.record_database_query("select_orders", 35, rows=12)
        monitor.record_database_query("select_orders", 900, success=False, error="deadlock")

        assert len(monitor.get_metrics("db_query_time")) == 2
        assert monitor.get_metrics("db_rows")[0].value == 12
        assert monitor.get_metrics("db_errors")[0].context["error"] == "deadlock"

    def test_cache_operation_wrapper(self, monitor):
        monitor.record_cache_operation("hit", "user:42")
        assert monitor.record_cache_operation("flush", "user:42") is None

        [sample] = monitor.get_metrics("cache_operations")
        assert sample.tags["type"] == "hit"
        assert sample.tags["key_prefix"] == "user"

    def test_naive_since_is_treated_as_utc(self, monitor):
        monitor.record_metric("m", 1)
        since = (utcnow() - timedelta(minutes=1)).replace(tzinfo=None)
        assert len(monitor.get_metrics("m", since=since)) == 1


class TestThresholdConfiguration:
    def test_default_thresholds_loaded(self, monitor):
        metrics = {t.metric for t in monitor.get_thresholds()}
        assert {"response_time", "error_rate", "throughput", "cache_hit_rate", "cost_per_request"} <= metrics

    def test_defaults_can_be_disabled(self):
        monitor = PerformanceMonitor(MonitorSettings(load_default_thresholds=False, register_default_component=False))
        assert monitor.get_thresholds() == []

    def test_set_threshold_applies_to_next_sample(self, monitor):
        monitor.set_threshold("queue_depth", 100, 500)
        monitor.record_metric("queue_depth", 150)
        assert monitor.get_active_alerts()[0].severity.value == "warning"

    def test_metric_profile_drives_trend_direction(self, monitor):
        monitor.set_metric_profile("conversion_rate", polarity=Polarity.HIGHER_IS_BETTER)
        for v in range(1, 11):
            monitor.record_metric("conversion_rate", v)

        [trend] = monitor.get_performance_trends("1h")
        assert trend.trend == TrendDirection.IMPROVING


class TestTrendsAndInsights:
    def test_trends_sorted_degrading_first(self, monitor):
        for v in range(1, 11):
            monitor.record_metric("throughput", 100 + v)
            monitor.record_metric("response_time", 100 * v)
            monitor.record_metric("stable_metric", 5)

        trends = monitor.get_performance_trends("24h")

        assert trends[0].metric == "response_time"
        assert trends[0].trend == TrendDirection.DEGRADING

    def test_timeframe_filters_old_samples(self, monitor):
        old = utcnow() - timedelta(hours=3)
        for i in range(10):
            monitor.record_metric("m", i, timestamp=old + timedelta(seconds=i))
        assert monitor.get_performance_trends("1h") == []
        assert len(monitor.get_performance_trends("24h")) == 1

    def test_bad_timeframe_raises_value_error(self, monitor):
        with pytest.raises(ValueError):
            monitor.get_performance_trends("soon")

    def test_predictive_insights(self, monitor):
        for v in range(1, 11):
            monitor.record_metric("response_time", 100 * v)
        [insight] = monitor.generate_predictive_insights("1h")
        assert insight.prediction.metric == "response_time"

    def test_bad_horizon_raises_value_error(self, monitor):
        with pytest.raises(ValueError):
            monitor.generate_predictive_insights("3h")


class TestEvaluationCycle:
    def test_trend_alert_from_evaluate(self, monitor):
        for v in range(1, 11):
            monitor.record_metric("latency_p50", 100 * v)
        monitor.evaluate()
        assert len(_alerts_of(monitor, "latency_p50", AlertType.TREND)) == 1

    def test_collectors_feed_the_store(self, monitor):
        monitor.add_collector("system", lambda: [MetricReading(name="cpu_usage", value=42, unit="%")])

        async def queue_collector():
            return [{"name": "queue_depth", "value": 7}]

        monitor.add_collector("queue", queue_collector)

        assert asyncio.run(monitor.collect()) == 2
        assert monitor.get_metrics("cpu_usage")[0].tags["source"] == "system"
        assert monitor.get_metrics("queue_depth")[0].value == 7

    def test_failing_collector_is_isolated(self, monitor):
        def broken():
            raise RuntimeError("sensor offline")

        monitor.add_collector("broken", broken)
        monitor.add_collector("ok", lambda: [MetricReading(name="m", value=1)])

        assert asyncio.run(monitor.collect()) == 1
        assert monitor.remove_collector("broken") is True

    def test_malformed_reading_is_skipped(self, monitor):
        monitor.add_collector("bad", lambda: [{"name": "cpu_usage"}, ("m", 1), {"name": "disk_usage", "value": 71}])
        monitor.add_collector("ok", lambda: [MetricReading(name="m", value=1)])

        assert asyncio.run(monitor.collect()) == 2
        assert monitor.get_metrics("cpu_usage") == []
        assert monitor.get_metrics("disk_usage")[0].value == 71
        assert monitor.get_metrics("m")[0].tags["source"] == "ok"

    def test_single_reading_is_accepted(self, monitor):
        monitor.add_collector("single", lambda: MetricReading(name="cpu_usage", value=12, unit="%"))
        monitor.add_collector("single_dict", lambda: {"name": "memory_usage", "value": 40})

        assert asyncio.run(monitor.collect()) == 2
        assert monitor.get_metrics("cpu_usage")[0].tags["source"] == "single"
        assert monitor.get_metrics("memory_usage")[0].value == 40

    def test_cleanup_purges_old_samples_and_alerts(self, monitor):
        monitor.record_metric("m", 1, timestamp=utcnow() - timedelta(days=2))
        monitor.record_metric("error_rate", 0.5)
        [alert] = monitor.get_active_alerts()
        alert.created_at = utcnow() - timedelta(days=2)
        monitor.resolve_alert(alert.id, "oncall")

        assert monitor.cleanup() == {"samples": 1, "alerts": 1}
        assert monitor.get_alert(alert.id) is None

    def test_run_once(self, monitor):
        for v in range(1, 11):
            monitor.record_metric("latency_p50", 100 * v)
        monitor.run_once()
        assert monitor.stats()["scheduler"]["ticks"] == 1
        assert monitor.stats()["evaluations"] == 1

    def test_listener_subscription(self, monitor):
        seen = []
        monitor.on_alert(seen.append)
        monitor.record_metric("error_rate", 0.5)
        assert monitor.remove_listener(seen.append) is True
        monitor.record_metric("response_time", 9000)
        assert [a.metric for a in seen] == ["error_rate"]


class TestHealth:
    def test_default_component_uses_recent_metrics(self):
        monitor = PerformanceMonitor(MonitorSettings(register_default_component=True))
        for _ in range(5):
            monitor.record_metric("response_time", 3000)

        health = asyncio.run(monitor.get_system_health())

        assert health.components["application"].score == 80
        assert health.overall == HealthStatus.HEALTHY

    def test_registered_probe(self, monitor):
        monitor.register_component("vector_db", lambda: ProbeReading(latency_ms=10), metrics=["vector_search_time"])
        health = asyncio.run(monitor.get_system_health())
        assert list(health.components) == ["vector_db"]
        assert health.score == 100


class TestLifecycle:
    def test_start_and_stop(self, monitor):
        assert monitor.start()["status"] == "started"
        assert monitor.is_running
        assert monitor.start()["status"] == "already_running"
        assert monitor.stop()["status"] == "stopped"
        assert not monitor.is_running

    def test_stats_shape(self, monitor):
        monitor.record_metric("m", 1)
        stats = monitor.stats()
        assert stats["recorded"] == 1
        assert stats["tracked_metrics"] == 1
        assert stats["sink"] is None
        assert "scheduler" in stats


class TestConcurrency:
    """Producer threads racing the evaluation pass."""

    def test_producers_and_evaluation_are_serialized(self, monitor):
        producers, per_thread = 8, 300
        done = threading.Event()

        def produce():
            for _ in range(per_thread):
                monitor.record_metric("response_time", 6000, "ms")

        def evaluate_loop():
            while not done.is_set():
                monitor.evaluate()

        evaluator = threading.Thread(target=evaluate_loop)
        evaluator.start()
        threads = [threading.Thread(target=produce) for _ in range(producers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        done.set()
        evaluator.join()
        monitor.evaluate()

        assert len(_alerts_of(monitor, "response_time", AlertType.THRESHOLD)) == 1
        timestamps = [s.timestamp for s in monitor.get_metrics("response_time")]
        assert timestamps == sorted(timestamps)

    def test_stat_counters_do_not_lose_increments(self, monitor):
        def produce():
            for i in range(500):
                monitor.record_metric("queue_depth", i)
            monitor.record_metric("queue_depth", float("inf"))

        threads = [threading.Thread(target=produce) for _ in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        stats = monitor.stats()
        assert stats["recorded"] == 3000
        assert stats["rejected"] == 6


class TestMeasurement:
    def test_measure_success(self, monitor):
        with monitor.measure("pricing.lookup", tags={"symbol": "BTC"}) as m:
            sum(range(1000))

        [sample] = monitor.get_metrics("pricing.lookup.success")
        assert sample.unit == "ms"
        assert sample.value == pytest.approx(m.duration_ms)
        assert sample.tags["symbol"] == "BTC"
        assert monitor.get_metrics("pricing.lookup.error") == []

    def test_measure_error_records_and_reraises(self, monitor):
        with pytest.raises(KeyError):
            with monitor.measure("pricing.lookup"):
                raise KeyError("ETH")

        assert len(monitor.get_metrics("pricing.lookup.error")) == 1
        [count] = monitor.get_metrics("pricing.lookup.error_count")
        assert count.value == 1
        assert count.unit == "count"
        assert monitor.get_metrics("pricing.lookup.success") == []

    @pytest.mark.asyncio
    async def test_measure_async_block(self, monitor):
        async with monitor.measure("llm.call"):
            await asyncio.sleep(0.01)

        [sample] = monitor.get_metrics("llm.call.success")
        assert sample.value >= 5

    @pytest.mark.asyncio
    async def test_timed_coroutine_error(self, monitor):
        @monitor.timed("llm.call")
        async def call():
            raise TimeoutError("upstream")

        with pytest.raises(TimeoutError):
            await call()
        assert len(monitor.get_metrics("llm.call.error_count")) == 1

    def test_timed_function(self, monitor):
        @monitor.timed("render", tags={"page": "home"})
        def render(name):
            return f"hello {name}"

        assert render("ops") == "hello ops"
        assert render.__name__ == "render"
        assert monitor.get_metrics("render.success")[0].tags["page"] == "home"

    def test_counter_and_gauge(self, monitor):
        monitor.record_counter("jobs_enqueued", 3)
        monitor.record_gauge("queue_depth", 17, "jobs")
        monitor.record_timing("batch_flush", 42.5)

        assert monitor.get_metrics("jobs_enqueued")[0].unit == "count"
        assert monitor.get_metrics("queue_depth")[0].value == 17
        assert monitor.get_metrics("batch_flush")[0].unit == "ms"
