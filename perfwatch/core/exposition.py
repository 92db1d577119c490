"""
Metric Exposition
Prometheus text format and the JSON dashboard snapshot.

Prometheus output per metric (recent window):

    # HELP perfwatch_response_time_avg response_time (ms), recent window avg
    # TYPE perfwatch_response_time_avg gauge
    perfwatch_response_time_avg 812.5 1760000000000
    # HELP perfwatch_response_time_p95 response_time (ms), recent window p95
    # TYPE perfwatch_response_time_p95 gauge
    perfwatch_response_time_p95 1490 1760000000000
"""

import re
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from . import conventions as conv
from .models import MetricSample, utcnow

_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_:]")

FRAME_COLUMNS = ["name", "value", "unit", "timestamp", "operation", "category", "escalated", "event", "error"]


def prometheus_name(prefix: str, metric: str) -> str:
    name = _INVALID_NAME_CHARS.sub("_", f"{prefix}_{metric}" if prefix else metric)
    if name[0].isdigit():
        name = f"_{name}"
    return name


def p95(values) -> float:
    """Nearest-rank 95th percentile"""
    if len(values) == 0:
        return 0.0
    return float(np.percentile(np.asarray(values, dtype=float), 95, method="inverted_cdf"))


def _fmt(value: float) -> str:
    return format(float(value), ".10g")


def encode_prometheus(
    samples: Dict[str, List[MetricSample]],
    prefix: str = "perfwatch",
    gauges: Optional[Dict[str, float]] = None,
    timestamp_ms: Optional[int] = None,
) -> str:
    """
    Encode per-metric avg/p95 summaries in Prometheus text exposition format.

    Args:
        samples: metric name → samples in the export window
        prefix: metric name prefix
        gauges: extra single-value gauges (name → value), e.g. active alerts
        timestamp_ms: timestamp for gauges; defaults to now

    Each summary line carries the epoch-millisecond timestamp of the
    metric's most recent sample.
    """
    now_ms = timestamp_ms if timestamp_ms is not None else int(utcnow().timestamp() * 1000)
    lines: List[str] = []

    for metric in sorted(samples):
        series = samples[metric]
        if not series:
            continue
        values = np.array([s.value for s in series], dtype=float)
        name = prometheus_name(prefix, metric)
        unit = series[-1].unit
        ts = series[-1].epoch_ms

        help_text = f"{metric}{f' ({unit})' if unit else ''}"
        for suffix, value in (("avg", values.mean()), ("p95", p95(values))):
            lines.append(f"# HELP {name}_{suffix} {help_text}, recent window {suffix}")
            lines.append(f"# TYPE {name}_{suffix} gauge")
            lines.append(f"{name}_{suffix} {_fmt(value)} {ts}")
        lines.append("")

    for gauge, value in (gauges or {}).items():
        name = prometheus_name(prefix, gauge)
        lines.append(f"# HELP {name} {gauge}")
        lines.append(f"# TYPE {name} gauge")
        lines.append(f"{name} {_fmt(value)} {now_ms}")
        lines.append("")

    return "\n".join(lines).strip() + "\n" if lines else ""


# =============================================================================
# Dashboard Snapshot
# =============================================================================

def to_frame(samples: Iterable[MetricSample]) -> pd.DataFrame:
    rows = [
        {
            "name": s.name,
            "value": s.value,
            "unit": s.unit,
            "timestamp": s.timestamp,
            "operation": s.tags.get(conv.TAG_OPERATION, ""),
            "category": s.tags.get(conv.TAG_CATEGORY, ""),
            "escalated": s.tags.get(conv.TAG_ESCALATED, ""),
            "event": s.tags.get(conv.TAG_CACHE_EVENT, ""),
            "error": s.context.get("error"),
        }
        for s in samples
    ]
    return pd.DataFrame(rows, columns=FRAME_COLUMNS)


def _operations(df: pd.DataFrame) -> Dict[str, Any]:
    durations = df[df["name"].isin(conv.DURATION_METRICS)]
    errors = df[df["name"].isin(conv.ERROR_METRICS)]
    error_counts = errors.groupby("operation").size()

    operations = {}
    for operation, group in durations.groupby("operation"):
        values = group["value"].to_numpy()
        count = len(values)
        operations[operation or "unlabelled"] = {
            "count": int(count),
            "avg_duration": round(float(values.mean()), 3),
            "p95_duration": round(p95(values), 3),
            "error_rate": round(float(error_counts.get(operation, 0)) / count, 4) if count else 0.0,
        }
    return operations


def _ai(df: pd.DataFrame) -> Dict[str, Any]:
    responses = df[df["name"] == conv.AI_RESPONSE_TIME]
    confidence = df[df["name"] == conv.AI_CONFIDENCE]["value"]
    hallucination = df[df["name"] == conv.AI_HALLUCINATION]["value"]
    total = len(responses)

    return {
        "avg_confidence": round(float(confidence.mean()), 4) if len(confidence) else 0.0,
        "escalation_rate": round(float((responses["escalated"] == "true").sum()) / total, 4) if total else 0.0,
        "hallucination_rate": round(float((hallucination > conv.HALLUCINATION_FLOOR).sum()) / total, 4) if total else 0.0,
        "total_responses": int(total),
        "tokens_used": int(df[df["name"] == conv.AI_TOKENS]["value"].sum()),
    }


def _errors(df: pd.DataFrame, recent: int = 10) -> Dict[str, Any]:
    errors = df[df["name"].isin(conv.ERROR_METRICS)].sort_values("timestamp")
    operations = int(df["name"].isin(conv.DURATION_METRICS).sum())
    count = int(len(errors))

    return {
        "rate": round(count / operations, 4) if operations else 0.0,
        "count": count,
        "recent_errors": [
            {
                "timestamp": row.timestamp.isoformat(),
                "metric": row.name,
                "operation": row.operation,
                "message": row.error or "",
            }
            for row in errors.tail(recent).itertuples(index=False)
        ],
    }


def _cache(df: pd.DataFrame) -> Dict[str, Any]:
    events = df[df["name"] == conv.CACHE_OPERATIONS]["event"].value_counts()
    hits = int(events.get("hit", 0))
    misses = int(events.get("miss", 0))
    lookups = hits + misses

    return {
        "hit_rate": round(hits / lookups, 4) if lookups else 0.0,
        "hits": hits,
        "misses": misses,
        "evictions": int(events.get("eviction", 0)),
    }


def dashboard_snapshot(samples: Iterable[MetricSample], system: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Group recent samples into operations/ai/errors/cache/system sections.

    Args:
        samples: samples in the dashboard window (any metric)
        system: process-level figures supplied by the monitor
    """
    df = to_frame(samples)
    return {
        "generated_at": utcnow().isoformat(),
        "operations": _operations(df),
        "ai": _ai(df),
        "errors": _errors(df),
        "cache": _cache(df),
        "system": dict(system or {}),
    }
