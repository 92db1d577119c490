"""
Thresholds API

Endpoints:
    GET /api/thresholds           → Registered thresholds
    PUT /api/thresholds/{metric}  → Register or replace a threshold
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ValidationError

from perfwatch.core import InsightType, PerformanceMonitor, Polarity

from .deps import get_monitor

router = APIRouter(prefix="/thresholds", tags=["Thresholds"])


class ThresholdRequest(BaseModel):
    """Request body for configuring a threshold"""
    warning: float
    critical: float
    unit: str = ""
    polarity: Optional[Polarity] = None
    insight_type: Optional[InsightType] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "warning": 2000,
                "critical": 5000,
                "unit": "ms",
                "polarity": "higher_is_worse",
            }
        }
    }


@router.get("")
async def list_thresholds(monitor: PerformanceMonitor = Depends(get_monitor)):
    thresholds = monitor.get_thresholds()
    return {
        "count": len(thresholds),
        "thresholds": [t.to_dict() for t in sorted(thresholds, key=lambda t: t.metric)],
    }


@router.put("/{metric}")
async def set_threshold(
    metric: str,
    request: ThresholdRequest,
    monitor: PerformanceMonitor = Depends(get_monitor),
):
    """
    Register or replace the warning/critical boundary for a metric.

    For higher_is_worse metrics critical must be >= warning,
    for higher_is_better metrics critical must be <= warning.
    """
    try:
        threshold = monitor.set_threshold(
            metric,
            request.warning,
            request.critical,
            unit=request.unit,
            polarity=request.polarity,
            insight_type=request.insight_type,
        )
    except ValidationError as e:
        raise HTTPException(422, str(e))

    return {
        "message": f"Threshold for {metric} configured",
        "threshold": threshold.to_dict(),
    }
