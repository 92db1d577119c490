"""
API Routers
"""
from .metrics import router as metrics_router
from .thresholds import router as thresholds_router
from .alerts import router as alerts_router
from .health import router as health_router
from .export import router as export_router

__all__ = ["metrics_router", "thresholds_router", "alerts_router", "health_router", "export_router"]
