"""
Export API
Prometheus scrape endpoint, dashboard snapshot and raw metric downloads.

Formats:
    - Prometheus text exposition (version 0.0.4)
    - CSV (default) for metric history, Excel/pandas compatible
    - JSON for programmatic access
"""

import io
import json
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse, StreamingResponse

from perfwatch.core import PerformanceMonitor
from perfwatch.core.exposition import to_frame

from .deps import get_monitor

router = APIRouter(prefix="/export", tags=["Export"])

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


@router.get("/prometheus", response_class=PlainTextResponse)
async def export_prometheus(monitor: PerformanceMonitor = Depends(get_monitor)):
    return PlainTextResponse(monitor.export_prometheus(), media_type=PROMETHEUS_CONTENT_TYPE)


@router.get("/dashboard")
async def export_dashboard(monitor: PerformanceMonitor = Depends(get_monitor)):
    return monitor.dashboard_snapshot()


# =============================================================================
# Metric History Export
# =============================================================================

@router.get("/metrics/{name}")
async def export_metric(
    name: str,
    format: str = Query(default="csv", description="csv or json"),
    limit: int = Query(default=10000, ge=1, le=100000),
    monitor: PerformanceMonitor = Depends(get_monitor),
):
    """
    Export retained samples for a metric.

    Returns:
        CSV or JSON file download
    """
    if format not in ("csv", "json"):
        raise HTTPException(400, f"Invalid format: {format}. Use: csv, json")

    samples = monitor.get_metrics(name, limit=limit)
    if not samples:
        raise HTTPException(404, f"No data for metric: {name}")

    filename = f"{name}_{datetime.now().strftime('%Y%m%d_%H%M%S')}"

    if format == "json":
        content = json.dumps([s.model_dump(mode="json") for s in samples], indent=2)
        return StreamingResponse(
            io.BytesIO(content.encode()),
            media_type="application/json",
            headers={"Content-Disposition": f"attachment; filename={filename}.json"},
        )

    df = to_frame(samples)[["timestamp", "name", "value", "unit", "operation", "category"]]
    df["timestamp"] = df["timestamp"].map(lambda ts: ts.isoformat())
    output = io.StringIO()
    df.to_csv(output, index=False)

    return StreamingResponse(
        io.BytesIO(output.getvalue().encode()),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}.csv"},
    )
