"""
Health API

Endpoints:
    GET /api/health/system  → Component scores, overall status and recommendations
"""

from fastapi import APIRouter, Depends

from perfwatch.core import PerformanceMonitor

from .deps import get_monitor

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("/system")
async def system_health(monitor: PerformanceMonitor = Depends(get_monitor)):
    report = await monitor.get_system_health()
    return report.to_dict()
