"""
Alerts API
Read, resolve and stream alerts raised by the detectors.

Endpoints:
    GET  /api/alerts                → Active alerts
    GET  /api/alerts/all            → Every retained alert (active and resolved)
    GET  /api/alerts/stats          → Alert manager statistics
    GET  /api/alerts/stream         → SSE stream of new alerts
    POST /api/alerts/{id}/resolve   → Resolve an alert
"""

import asyncio
import json
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from perfwatch.alerts import Alert
from perfwatch.core import PerformanceMonitor

from .deps import get_monitor

router = APIRouter(prefix="/alerts", tags=["Alerts"])

KEEPALIVE_SECONDS = 30.0


class ResolveAlertRequest(BaseModel):
    resolved_by: Optional[str] = None


# =============================================================================
# Reads
# =============================================================================

@router.get("")
async def list_active(monitor: PerformanceMonitor = Depends(get_monitor)):
    alerts = monitor.get_active_alerts()
    return {
        "count": len(alerts),
        "alerts": [a.to_dict() for a in alerts],
    }


@router.get("/all")
async def list_all(
    limit: int = Query(default=200, ge=1, le=1000),
    monitor: PerformanceMonitor = Depends(get_monitor),
):
    alerts = sorted(monitor.get_alerts(), key=lambda a: a.created_at, reverse=True)[:limit]
    return {
        "count": len(alerts),
        "alerts": [a.to_dict() for a in alerts],
    }


@router.get("/stats")
async def get_stats(monitor: PerformanceMonitor = Depends(get_monitor)):
    return monitor.stats()["alerts"]


# =============================================================================
# SSE Stream
# =============================================================================

@router.get("/stream")
async def stream_alerts(monitor: PerformanceMonitor = Depends(get_monitor)):
    """
    Server-Sent Events stream of created and resolved alerts.

    Connect via EventSource in browser:
        const es = new EventSource('/api/alerts/stream');
        es.onmessage = (e) => console.log(JSON.parse(e.data));
    """
    loop = asyncio.get_running_loop()
    events: asyncio.Queue = asyncio.Queue(maxsize=1000)

    def enqueue(payload: dict) -> None:
        if events.full():
            return
        events.put_nowait(payload)

    # Alerts are raised on producer and scheduler threads
    def on_alert(alert: Alert) -> None:
        if not loop.is_closed():
            loop.call_soon_threadsafe(enqueue, alert.to_dict())

    monitor.on_alert(on_alert)

    async def event_generator():
        try:
            yield f"data: {json.dumps({'type': 'connected', 'message': 'Alert stream connected'})}\n\n"

            while True:
                try:
                    payload = await asyncio.wait_for(events.get(), timeout=KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                yield f"data: {json.dumps(payload)}\n\n"
        finally:
            monitor.remove_listener(on_alert)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


# =============================================================================
# Lifecycle
# =============================================================================

@router.post("/{alert_id}/resolve")
async def resolve_alert(
    alert_id: str,
    request: Optional[ResolveAlertRequest] = None,
    monitor: PerformanceMonitor = Depends(get_monitor),
):
    alert = monitor.get_alert(alert_id)
    if alert is None:
        raise HTTPException(404, f"Alert not found: {alert_id}")

    monitor.resolve_alert(alert_id, request.resolved_by if request else None)

    return {
        "message": f"Alert {alert_id} resolved",
        "alert": alert.to_dict(),
    }
