import asyncio
import functools
import inspect
import threading
import time
from datetime import timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

import structlog
from pydantic import ValidationError

from perfwatch.alerts import Alert, AlertListener, AlertManager
from perfwatch.analytics import (
    AnomalyDetector,
    ThresholdEvaluator,
    ThresholdRegistry,
    TrendAnalyzer,
    TrendDirection,
    TrendResult,
)
from perfwatch.config import DEFAULT_PROFILES, DEFAULT_THRESHOLDS, MonitorSettings, get_settings
from perfwatch.db import SQLiteMetricSink
from perfwatch.health import (
    HealthAggregator,
    HealthProbe,
    MetricWindowProbe,
    SystemHealth,
    build_default_rules,
)
from perfwatch.insights import PredictiveInsight, PredictiveInsightGenerator
from perfwatch.services import MonitoringScheduler

from . import conventions as conv
from .exposition import dashboard_snapshot, encode_prometheus
from .models import (
    InsightType,
    MetricCategory,
    MetricProfile,
    MetricReading,
    MetricRecord,
    MetricSample,
    Polarity,
    Threshold,
    parse_timeframe,
    utcnow,
)
from .store import MetricStore

logger = structlog.get_logger(__name__)

Collector = Callable[[], Union[Iterable[Any], Awaitable[Iterable[Any]]]]

CACHE_EVENTS = ("hit", "miss", "eviction")


class PerformanceMonitor:
    def __init__(
        self,
        settings: Optional[MonitorSettings] = None,
        sink: Optional[SQLiteMetricSink] = None,
    ):
        self.settings = settings or get_settings()
        s = self.settings

        self._store = MetricStore(
            capacity=s.history_capacity,
            max_age=timedelta(seconds=s.history_max_age_seconds),
        )
        self._alerts = AlertManager()
        self._registry = ThresholdRegistry()
        self._thresholds = ThresholdEvaluator(self._registry, self._alerts)
        self._anomaly = AnomalyDetector(
            self._alerts,
            min_history=s.anomaly_min_history,
            recent_window=s.anomaly_recent_window,
            warning_z=s.anomaly_warning_z,
            critical_z=s.anomaly_critical_z,
        )
        self._trend = TrendAnalyzer(
            self._registry,
            self._alerts,
            window=s.trend_window,
            min_history=s.trend_min_history,
            stable_pct=s.trend_stable_pct,
            alert_confidence=s.trend_alert_confidence,
            critical_pct=s.trend_critical_pct,
        )
        self._health = HealthAggregator(
            self._alerts,
            rules=build_default_rules(
                latency_limit_ms=s.health_latency_limit_ms,
                latency_penalty=s.health_latency_penalty,
                error_rate_limit=s.health_error_rate_limit,
                error_rate_penalty=s.health_error_rate_penalty,
                throughput_floor=s.health_throughput_floor,
                throughput_penalty=s.health_throughput_penalty,
            ),
            timeout=s.health_check_timeout_seconds,
        )
        self._insights = PredictiveInsightGenerator(
            self._trend,
            self._registry,
            min_history=s.insight_min_history,
            min_confidence=s.insight_min_confidence,
            affected_components=self._health.components_for_metric,
        )
        self._collectors: Dict[str, Collector] = {}
        self._scheduler = MonitoringScheduler(
            collect=self.collect,
            evaluate=self.evaluate,
            cleanup=self.cleanup,
            interval=s.tick_interval_seconds,
        )

        if sink is None and s.persistence_enabled:
            sink = SQLiteMetricSink(s.persistence_path, queue_size=s.persistence_queue_size)
        self._sink = sink

        self._started_at = utcnow()
        self._stats = {"recorded": 0, "rejected": 0, "evaluations": 0}
        self._stats_lock = threading.Lock()

        if s.load_default_thresholds:
            self._load_defaults()
        if s.register_default_component:
            self.register_component(
                "application",
                MetricWindowProbe(self._store, window=s.health_probe_window),
            )

    def _bump(self, key: str) -> None:
        with self._stats_lock:
            self._stats[key] += 1

    def _load_defaults(self) -> None:
        for metric, default in DEFAULT_THRESHOLDS.items():
            self._registry.set_threshold(
                metric,
                default.warning,
                default.critical,
                unit=default.unit,
                polarity=Polarity(default.polarity),
                insight_type=InsightType(default.insight_type),
            )
        for metric, (polarity, insight_type) in DEFAULT_PROFILES.items():
            self._registry.set_profile(metric, Polarity(polarity), InsightType(insight_type))

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._scheduler.is_running

    def start(self) -> Dict[str, Any]:
        if self._sink is not None:
            self._sink.start()
        result = self._scheduler.start()
        logger.info(
            "monitoring_started",
            interval=self.settings.tick_interval_seconds,
            thresholds=len(self._registry),
            components=len(self._health.components()),
        )
        return result

    def stop(self) -> Dict[str, Any]:
        result = self._scheduler.stop()
        if self._sink is not None:
            self._sink.stop()
        logger.info(
            "monitoring_stopped",
            samples_retained=self._store.count(),
            alerts=len(self._alerts.list_all()),
        )
        return result

    # =========================================================================
    # Producers
    # =========================================================================

    def record_metric(
        self,
        name: str,
        value: float,
        unit: str = "",
        tags: Optional[Dict[str, str]] = None,
        context: Optional[Dict[str, Any]] = None,
        timestamp=None,
    ) -> Optional[MetricSample]:
        """
        Record a sample and run threshold evaluation on it.

        Never raises: invalid samples are logged and dropped (returns None).
        """
        try:
            sample = self._store.record(name, value, unit, tags, context, timestamp)
        except Exception as e:
            self._bump("rejected")
            logger.warning("metric_rejected", metric=name, value=value, error=str(e))
            return None

        self._bump("recorded")

        try:
            self._thresholds.evaluate(sample)
        except Exception:
            logger.exception("threshold_evaluation_failed", metric=name)

        if self._sink is not None:
            try:
                record = MetricRecord.from_sample(
                    sample,
                    self._registry.get(name),
                    organization_id=self.settings.organization_id,
                )
                self._sink.submit(record)
            except Exception:
                logger.exception("metric_persist_failed", metric=name)

        return sample

    def record_api_response(
        self,
        endpoint: str,
        method: str = "GET",
        status_code: int = 200,
        duration_ms: float = 0.0,
        context: Optional[Dict[str, Any]] = None,
    ) -> Optional[MetricSample]:
        method = method.upper()
        tags = {
            conv.TAG_CATEGORY: MetricCategory.API.value,
            conv.TAG_OPERATION: f"{method} {endpoint}",
            "endpoint": endpoint,
            "method": method,
            "status": str(status_code),
        }
        sample = self.record_metric(conv.RESPONSE_TIME, duration_ms, "ms", tags, context)
        if status_code >= 500:
            self.record_metric(
                conv.API_ERRORS, 1, "count", tags,
                {**(context or {}), "error": f"HTTP {status_code}"},
            )
        return sample

    def record_ai_operation(
        self,
        operation: str,
        duration_ms: float,
        confidence: Optional[float] = None,
        tokens: Optional[int] = None,
        escalated: bool = False,
        hallucination_score: Optional[float] = None,
        success: bool = True,
        context: Optional[Dict[str, Any]] = None,
    ) -> Optional[MetricSample]:
        tags = {
            conv.TAG_CATEGORY: MetricCategory.AI.value,
            conv.TAG_OPERATION: operation,
            conv.TAG_ESCALATED: "true" if escalated else "false",
        }
        sample = self.record_metric(conv.AI_RESPONSE_TIME, duration_ms, "ms", tags, context)
        if confidence is not None:
            self.record_metric(conv.AI_CONFIDENCE, confidence, "ratio", tags, context)
        if tokens is not None:
            self.record_metric(conv.AI_TOKENS, tokens, "tokens", tags, context)
        if hallucination_score is not None:
            self.record_metric(conv.AI_HALLUCINATION, hallucination_score, "ratio", tags, context)
        if not success:
            self.record_metric(conv.AI_ERRORS, 1, "count", tags, context)
        return sample

    def record_database_query(
        self,
        query: str,
        duration_ms: float,
        rows: Optional[int] = None,
        success: bool = True,
        error: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> Optional[MetricSample]:
        tags = {
            conv.TAG_CATEGORY: MetricCategory.DATABASE.value,
            conv.TAG_OPERATION: query,
        }
        sample = self.record_metric(conv.DB_QUERY_TIME, duration_ms, "ms", tags, context)
        if rows is not None:
            self.record_metric(conv.DB_ROWS, rows, "rows", tags, context)
        if not success:
            self.record_metric(
                conv.DB_ERRORS, 1, "count", tags,
                {**(context or {}), "error": error or "query failed"},
            )
        return sample

    def record_cache_operation(self, kind: str, key: str = "") -> Optional[MetricSample]:
        if kind not in CACHE_EVENTS:
            logger.warning("cache_event_rejected", kind=kind)
            return None
        tags = {
            conv.TAG_CATEGORY: MetricCategory.CACHE.value,
            conv.TAG_CACHE_EVENT: kind,
            "key_prefix": key.split(":")[0] if key else "",
        }
        return self.record_metric(conv.CACHE_OPERATIONS, 1, "count", tags)

    def record_timing(self, name: str, duration_ms: float, tags: Optional[Dict[str, str]] = None) -> Optional[MetricSample]:
        return self.record_metric(name, duration_ms, "ms", tags)

    def record_counter(self, name: str, increment: float = 1, tags: Optional[Dict[str, str]] = None) -> Optional[MetricSample]:
        return self.record_metric(name, increment, "count", tags)

    def record_gauge(
        self, name: str, value: float, unit: str = "", tags: Optional[Dict[str, str]] = None
    ) -> Optional[MetricSample]:
        return self.record_metric(name, value, unit, tags)

    def measure(self, name: str, tags: Optional[Dict[str, str]] = None) -> "Measurement":
        """
        Time a block of work.

        Records `<name>.success` on normal exit. On an exception records
        `<name>.error` and `<name>.error_count`, then lets it propagate.
        Works with both `with` and `async with`:

            with monitor.measure("pricing.lookup"):
                price = lookup(symbol)

            async with monitor.measure("llm.call", tags={"model": "small"}):
                reply = await client.complete(prompt)
        """
        return Measurement(self, name, tags)

    def timed(self, name: str, tags: Optional[Dict[str, str]] = None):
        """Decorator form of measure() for plain and coroutine functions"""
        def decorator(func):
            if inspect.iscoroutinefunction(func):
                @functools.wraps(func)
                async def async_wrapper(*args, **kwargs):
                    async with self.measure(name, tags):
                        return await func(*args, **kwargs)
                return async_wrapper

            @functools.wraps(func)
            def wrapper(*args, **kwargs):
                with self.measure(name, tags):
                    return func(*args, **kwargs)
            return wrapper
        return decorator

    # =========================================================================
    # Evaluation Cycle
    # =========================================================================

    def add_collector(self, name: str, collector: Collector) -> None:
        """
        Register a metric source pulled on every tick.

        The collector returns an iterable of MetricReading (or dicts with
        name/value/unit/tags), directly or as an awaitable.
        """
        self._collectors[name] = collector

    def remove_collector(self, name: str) -> bool:
        return self._collectors.pop(name, None) is not None

    async def collect(self) -> int:
        recorded = 0
        for name, collector in list(self._collectors.items()):
            try:
                readings = await asyncio.wait_for(
                    self._call_collector(collector),
                    timeout=self.settings.collector_timeout_seconds,
                )
            except asyncio.TimeoutError:
                logger.warning("collector_timeout", collector=name)
                continue
            except Exception:
                logger.exception("collector_failed", collector=name)
                continue

            if isinstance(readings, (MetricReading, dict)):
                readings = [readings]
            for reading in readings or []:
                try:
                    if isinstance(reading, dict):
                        reading = MetricReading(**reading)
                    tags = {"source": name, **reading.tags}
                except (ValidationError, AttributeError, TypeError) as e:
                    logger.warning("collector_reading_rejected", collector=name, reading=repr(reading), error=str(e))
                    continue
                if self.record_metric(reading.name, reading.value, reading.unit, tags) is not None:
                    recorded += 1
        return recorded

    async def _call_collector(self, collector: Collector):
        if inspect.iscoroutinefunction(collector):
            return await collector()
        result = await asyncio.to_thread(collector)
        if inspect.isawaitable(result):
            return await result
        return result

    def evaluate(self) -> int:
        """Run threshold, anomaly and trend checks over every tracked metric"""
        created = 0
        for name, history in self._store.snapshot().items():
            if not history:
                continue
            try:
                for alert in (
                    self._thresholds.evaluate(history[-1]),
                    self._anomaly.detect_anomaly(name, history),
                    self._trend.check_trend(name, history),
                ):
                    if alert is not None:
                        created += 1
            except Exception:
                logger.exception("metric_evaluation_failed", metric=name)
        self._bump("evaluations")
        return created

    def cleanup(self) -> Dict[str, int]:
        purged_samples = self._store.purge()
        purged_alerts = self._alerts.cleanup(timedelta(seconds=self.settings.alert_retention_seconds))
        return {"samples": purged_samples, "alerts": purged_alerts}

    def run_once(self) -> None:
        """One collection → evaluation → cleanup tick on the calling thread"""
        self._scheduler.run_once()

    # =========================================================================
    # Consumers
    # =========================================================================

    def get_metrics(self, name: Optional[str] = None, since=None, tags=None, limit=None) -> List[MetricSample]:
        if since is not None and since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        return self._store.query(name, since=since, tags=tags, limit=limit)

    def metric_names(self) -> List[str]:
        return self._store.names()

    def sample_count(self, name: Optional[str] = None) -> int:
        return self._store.count(name)

    def get_active_alerts(self) -> List[Alert]:
        return self._alerts.list_active()

    def get_alerts(self) -> List[Alert]:
        return self._alerts.list_all()

    def get_alert(self, alert_id: str) -> Optional[Alert]:
        return self._alerts.get(alert_id)

    def resolve_alert(self, alert_id: str, resolved_by: Optional[str] = None) -> bool:
        return self._alerts.resolve(alert_id, resolved_by)

    def on_alert(self, callback: AlertListener) -> None:
        self._alerts.on_alert(callback)

    def remove_listener(self, callback: AlertListener) -> bool:
        return self._alerts.remove_listener(callback)

    async def get_system_health(self) -> SystemHealth:
        return await self._health.get_system_health()

    def register_component(self, name: str, probe: HealthProbe, metrics: Iterable[str] = ()) -> None:
        self._health.register_component(name, probe, metrics)

    def unregister_component(self, name: str) -> bool:
        return self._health.unregister_component(name)

    def get_performance_trends(self, timeframe: str = "24h") -> List[TrendResult]:
        """
        Trend per metric over samples inside `timeframe`.

        Degrading trends come first, then by confidence.

        Raises:
            UnknownHorizonError: timeframe is not <n>s|m|h|d
        """
        since = utcnow() - parse_timeframe(timeframe)
        trends = []
        for name in self._store.names():
            result = self._trend.analyze_trend(name, self._store.query(name, since=since), timeframe)
            if result is not None:
                trends.append(result)

        return sorted(
            trends,
            key=lambda t: (t.trend != TrendDirection.DEGRADING, -t.confidence),
        )

    def generate_predictive_insights(self, time_horizon: str = "24h") -> List[PredictiveInsight]:
        return self._insights.generate_insights(self._store.snapshot(), time_horizon)

    def set_threshold(
        self,
        metric: str,
        warning: float,
        critical: float,
        unit: str = "",
        polarity: Optional[Polarity] = None,
        insight_type: Optional[InsightType] = None,
    ) -> Threshold:
        return self._registry.set_threshold(metric, warning, critical, unit, polarity, insight_type)

    def set_metric_profile(
        self,
        metric: str,
        polarity: Optional[Polarity] = None,
        insight_type: Optional[InsightType] = None,
    ) -> MetricProfile:
        return self._registry.set_profile(metric, polarity, insight_type)

    def get_thresholds(self) -> List[Threshold]:
        return self._registry.all()

    # =========================================================================
    # Export
    # =========================================================================

    def _export_window(self) -> Dict[str, List[MetricSample]]:
        since = utcnow() - timedelta(seconds=self.settings.export_window_seconds)
        return {name: self._store.query(name, since=since) for name in self._store.names()}

    def export_prometheus(self) -> str:
        active = self._alerts.list_active()
        gauges = {
            "active_alerts": len(active),
            "critical_alerts": sum(1 for a in active if a.severity.value == "critical"),
            "tracked_metrics": len(self._store.names()),
        }
        return encode_prometheus(self._export_window(), self.settings.prometheus_prefix, gauges)

    def dashboard_snapshot(self) -> Dict[str, Any]:
        samples = [s for series in self._export_window().values() for s in series]
        return dashboard_snapshot(samples, system=self._system_section())

    def _system_section(self) -> Dict[str, Any]:
        active = self._alerts.list_active()
        return {
            "uptime_seconds": round((utcnow() - self._started_at).total_seconds(), 2),
            "monitoring": self.is_running,
            "tracked_metrics": len(self._store.names()),
            "retained_samples": self._store.count(),
            "active_alerts": len(active),
            "critical_alerts": sum(1 for a in active if a.severity.value == "critical"),
        }

    def _stats_snapshot(self) -> Dict[str, int]:
        with self._stats_lock:
            return dict(self._stats)

    def stats(self) -> Dict[str, Any]:
        return {
            **self._stats_snapshot(),
            **self._system_section(),
            "thresholds": len(self._registry),
            "components": self._health.components(),
            "collectors": list(self._collectors.keys()),
            "store": self._store.stats(),
            "alerts": self._alerts.stats(),
            "scheduler": self._scheduler.stats.to_dict(),
            "sink": self._sink.stats() if self._sink is not None else None,
        }


class Measurement:
    """Times one block for PerformanceMonitor.measure(); sync or async."""

    def __init__(self, monitor: PerformanceMonitor, name: str, tags: Optional[Dict[str, str]] = None):
        self.monitor = monitor
        self.name = name
        self.tags = dict(tags or {})
        self.duration_ms: Optional[float] = None
        self._start = 0.0

    def __enter__(self) -> "Measurement":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.duration_ms = (time.perf_counter() - self._start) * 1000
        if exc_type is None:
            self.monitor.record_timing(f"{self.name}.success", self.duration_ms, self.tags)
        else:
            self.monitor.record_timing(f"{self.name}.error", self.duration_ms, self.tags)
            self.monitor.record_counter(f"{self.name}.error_count", 1, self.tags)
        return False

    async def __aenter__(self) -> "Measurement":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return self.__exit__(exc_type, exc, tb)
