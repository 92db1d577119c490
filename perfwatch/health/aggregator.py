import asyncio
import inspect
from typing import Dict, Iterable, List, Optional, Sequence

import structlog

from perfwatch.alerts import AlertManager

from .models import (
    ComponentHealth,
    HealthRule,
    HealthStatus,
    ProbeReading,
    SystemHealth,
    status_for_score,
)
from .probes import HealthProbe

logger = structlog.get_logger(__name__)

ATTENTION_SCORE = 70.0


def build_default_rules(
    latency_limit_ms: float = 2000.0,
    latency_penalty: float = 20.0,
    error_rate_limit: float = 0.05,
    error_rate_penalty: float = 30.0,
    throughput_floor: float = 20.0,
    throughput_penalty: float = 15.0,
) -> List[HealthRule]:
    return [
        HealthRule(
            name="high_latency",
            predicate=lambda r: r.latency_ms is not None and r.latency_ms > latency_limit_ms,
            penalty=latency_penalty,
            description=f"latency above {latency_limit_ms:g}ms",
        ),
        HealthRule(
            name="high_error_rate",
            predicate=lambda r: r.error_rate is not None and r.error_rate > error_rate_limit,
            penalty=error_rate_penalty,
            description=f"error rate above {error_rate_limit:.0%}",
        ),
        HealthRule(
            name="low_throughput",
            predicate=lambda r: r.throughput is not None and r.throughput < throughput_floor,
            penalty=throughput_penalty,
            description=f"throughput below {throughput_floor:g}",
        ),
    ]


class HealthAggregator:
    """
    Scores registered components and averages them into system health.

    Component score = 100 minus the penalties of every rule that fires,
    clamped to [0, 100]. A probe that times out or raises scores 0.
    System score = mean of component scores.

    Usage:
        health = HealthAggregator(alerts, rules=build_default_rules(), timeout=3.0)
        health.register_component("database", database_probe, metrics=["db_query_time"])
        report = await health.get_system_health()
    """

    def __init__(
        self,
        alerts: AlertManager,
        rules: Optional[Sequence[HealthRule]] = None,
        timeout: float = 3.0,
    ):
        self._alerts = alerts
        self._rules: List[HealthRule] = list(rules) if rules is not None else build_default_rules()
        self._probes: Dict[str, HealthProbe] = {}
        self._watched: Dict[str, List[str]] = {}
        self.timeout = timeout

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register_component(self, name: str, probe: HealthProbe, metrics: Iterable[str] = ()) -> None:
        self._probes[name] = probe
        watched = list(metrics) or list(getattr(probe, "metrics", []))
        self._watched[name] = watched

    def unregister_component(self, name: str) -> bool:
        self._watched.pop(name, None)
        return self._probes.pop(name, None) is not None

    def components(self) -> List[str]:
        return list(self._probes.keys())

    def components_for_metric(self, metric: str) -> List[str]:
        return [name for name, metrics in self._watched.items() if metric in metrics]

    def add_rule(self, rule: HealthRule) -> None:
        self._rules.append(rule)

    @property
    def rules(self) -> List[HealthRule]:
        return list(self._rules)

    # -------------------------------------------------------------------------
    # Scoring
    # -------------------------------------------------------------------------

    def score_reading(self, name: str, reading: ProbeReading) -> ComponentHealth:
        score = 100.0
        issues = []
        for rule in self._rules:
            try:
                fired = rule.predicate(reading)
            except Exception:
                logger.exception("health_rule_failed", rule=rule.name, component=name)
                continue
            if fired:
                score -= rule.penalty
                issues.append(rule.description or rule.name)

        score = max(0.0, min(100.0, score))
        return ComponentHealth(
            name=name,
            status=status_for_score(score),
            score=score,
            latency=reading.latency_ms,
            error_rate=reading.error_rate,
            throughput=reading.throughput,
            availability=reading.availability,
            issues=issues,
        )

    async def check_component(self, name: str) -> ComponentHealth:
        """Run one probe under the timeout; failures become a zero score"""
        probe = self._probes[name]
        try:
            reading = await asyncio.wait_for(self._call_probe(probe), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("health_probe_timeout", component=name, timeout=self.timeout)
            return self._failed(name, f"health check timed out after {self.timeout:g}s")
        except Exception as e:
            logger.exception("health_probe_failed", component=name)
            return self._failed(name, f"health check failed: {e}")

        if not isinstance(reading, ProbeReading):
            logger.warning("health_probe_bad_reading", component=name, got=type(reading).__name__)
            return self._failed(name, "health check returned no reading")

        return self.score_reading(name, reading)

    async def _call_probe(self, probe: HealthProbe) -> ProbeReading:
        if inspect.iscoroutinefunction(probe) or inspect.iscoroutinefunction(
            getattr(probe, "__call__", None)
        ):
            return await probe()
        result = await asyncio.to_thread(probe)
        if inspect.isawaitable(result):
            return await result
        return result

    def _failed(self, name: str, error: str) -> ComponentHealth:
        return ComponentHealth(
            name=name,
            status=HealthStatus.UNHEALTHY,
            score=0.0,
            issues=[error],
            error=error,
        )

    async def get_system_health(self) -> SystemHealth:
        names = list(self._probes.keys())
        results = await asyncio.gather(*(self.check_component(n) for n in names))
        components = dict(zip(names, results))

        if components:
            score = sum(c.score for c in components.values()) / len(components)
        else:
            score = 100.0

        health = SystemHealth(
            overall=status_for_score(score),
            score=score,
            components=components,
            recommendations=self._recommendations(components, score),
            critical_issues=self._alerts.critical_active(),
        )

        logger.info(
            "system_health_checked",
            overall=health.overall.value,
            score=round(score, 1),
            components=len(components),
            critical_issues=len(health.critical_issues),
        )
        return health

    def _recommendations(self, components: Dict[str, ComponentHealth], score: float) -> List[str]:
        recommendations = []
        if score < ATTENTION_SCORE:
            recommendations.append("System requires immediate attention")

        for name, component in components.items():
            if component.error:
                recommendations.append(f"Restore {name}: {component.error}")
            elif component.status != HealthStatus.HEALTHY:
                recommendations.append(f"Investigate {name}: {', '.join(component.issues)}")

        if not recommendations:
            recommendations.append("System is performing well")
        return recommendations
