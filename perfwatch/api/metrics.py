"""
Metrics API
Ingest samples and read histories, trends and predictive insights.

Endpoints:
    POST /api/metrics              → Record a sample
    GET  /api/metrics              → Tracked metrics with latest value
    GET  /api/metrics/trends       → Trend per metric over a timeframe
    GET  /api/metrics/insights     → Predictive insights for a horizon
    GET  /api/metrics/{name}       → Samples for one metric
"""

from datetime import datetime
from typing import Any, Dict, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from perfwatch.core import PerformanceMonitor
from perfwatch.exceptions import UnknownHorizonError

from .deps import get_monitor

router = APIRouter(prefix="/metrics", tags=["Metrics"])


# =============================================================================
# Request Models
# =============================================================================

class RecordMetricRequest(BaseModel):
    """Request body for recording a sample"""
    name: str = Field(..., min_length=1)
    value: float
    unit: str = ""
    tags: Dict[str, str] = Field(default_factory=dict)
    context: Dict[str, Any] = Field(default_factory=dict)
    timestamp: Optional[Union[datetime, float]] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "name": "response_time",
                "value": 812.5,
                "unit": "ms",
                "tags": {"endpoint": "/orders", "method": "POST"},
            }
        }
    }


# =============================================================================
# Ingestion
# =============================================================================

@router.post("")
async def record_metric(request: RecordMetricRequest, monitor: PerformanceMonitor = Depends(get_monitor)):
    sample = monitor.record_metric(
        request.name,
        request.value,
        request.unit,
        request.tags,
        request.context,
        timestamp=request.timestamp,
    )
    if sample is None:
        raise HTTPException(400, f"Invalid sample for metric: {request.name}")

    return {
        "message": "Metric recorded",
        "sample": sample.model_dump(mode="json"),
    }


# =============================================================================
# Reads
# =============================================================================

@router.get("")
async def list_metrics(monitor: PerformanceMonitor = Depends(get_monitor)):
    """Every tracked metric with its retained sample count and latest value"""
    metrics = []
    for name in monitor.metric_names():
        samples = monitor.get_metrics(name, limit=1)
        latest = samples[-1] if samples else None
        metrics.append({
            "name": name,
            "unit": latest.unit if latest else "",
            "latest": latest.value if latest else None,
            "latest_at": latest.timestamp.isoformat() if latest else None,
            "samples": monitor.sample_count(name),
        })

    return {"count": len(metrics), "metrics": metrics}


@router.get("/trends")
async def get_trends(
    timeframe: str = Query(default="24h", description="e.g. 30m, 1h, 24h, 7d"),
    monitor: PerformanceMonitor = Depends(get_monitor),
):
    try:
        trends = monitor.get_performance_trends(timeframe)
    except UnknownHorizonError as e:
        raise HTTPException(400, str(e))

    return {
        "timeframe": timeframe,
        "count": len(trends),
        "trends": [t.to_dict() for t in trends],
    }


@router.get("/insights")
async def get_insights(
    horizon: str = Query(default="24h", description="1h, 24h, 7d or 30d"),
    monitor: PerformanceMonitor = Depends(get_monitor),
):
    try:
        insights = monitor.generate_predictive_insights(horizon)
    except UnknownHorizonError as e:
        raise HTTPException(400, str(e))

    return {
        "horizon": horizon,
        "count": len(insights),
        "insights": [i.to_dict() for i in insights],
    }


@router.get("/{name}")
async def get_metric(
    name: str,
    limit: int = Query(default=100, ge=1, le=10000),
    since: Optional[datetime] = None,
    monitor: PerformanceMonitor = Depends(get_monitor),
):
    if name not in monitor.metric_names():
        raise HTTPException(404, f"Unknown metric: {name}")

    samples = monitor.get_metrics(name, since=since, limit=limit)
    return {
        "name": name,
        "count": len(samples),
        "samples": [s.model_dump(mode="json") for s in samples],
    }
