"""Canned remediation hints attached to alerts."""

from typing import List

THRESHOLD_HINTS = {
    "response_time": [
        "Check database query performance",
        "Optimize vector search operations",
    ],
    "error_rate": [
        "Review error logs for patterns",
        "Check API rate limits",
    ],
    "throughput": [
        "Check upstream traffic and load balancer health",
        "Verify worker pool capacity",
    ],
    "cache_hit_rate": [
        "Review cache key design and TTLs",
        "Warm the cache for hot paths",
    ],
    "cost_per_request": [
        "Review model selection for high-volume operations",
        "Cache repeated AI responses",
    ],
}


def threshold_recommendations(metric: str, severity: str) -> List[str]:
    hints = list(THRESHOLD_HINTS.get(metric, ["Investigate metric anomaly"]))
    if severity == "critical":
        hints.insert(0, f"Escalate: {metric} is past its critical threshold")
    return hints


def anomaly_recommendations(metric: str) -> List[str]:
    return [
        "Investigate recent system changes",
        "Check for external factors",
        f"Review historical patterns for {metric}",
    ]


def trend_recommendations(metric: str, trend: str) -> List[str]:
    if trend == "degrading":
        return ["Take preventive action", "Investigate root cause", "Consider scaling resources"]
    return ["Continue monitoring"]
