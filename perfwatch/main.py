from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from perfwatch import __version__
from perfwatch.api import (
    alerts_router,
    export_router,
    health_router,
    metrics_router,
    thresholds_router,
)
from perfwatch.config import MonitorSettings, get_settings
from perfwatch.core import PerformanceMonitor


def create_app(
    monitor: Optional[PerformanceMonitor] = None,
    settings: Optional[MonitorSettings] = None,
) -> FastAPI:
    """
    Build the API around a monitor.

    The monitor's scheduler runs for the lifetime of the application.
    """
    settings = settings or get_settings()
    monitor = monitor or PerformanceMonitor(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        monitor.start()
        yield
        if monitor.is_running:
            monitor.stop()

    app = FastAPI(
        title="perfwatch",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
    )
    app.state.monitor = monitor

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(metrics_router, prefix="/api")
    app.include_router(thresholds_router, prefix="/api")
    app.include_router(alerts_router, prefix="/api")
    app.include_router(health_router, prefix="/api")
    app.include_router(export_router, prefix="/api")

    @app.get("/")
    async def root():
        return {
            "name": "perfwatch",
            "version": __version__,
            "docs": "/docs",
        }

    @app.get("/health")
    async def health():
        stats = monitor.stats()
        return {
            "status": "healthy",
            "monitor": {
                "running": stats["monitoring"],
                "tracked_metrics": stats["tracked_metrics"],
                "retained_samples": stats["retained_samples"],
                "active_alerts": stats["active_alerts"],
                "uptime_seconds": stats["uptime_seconds"],
            },
            "scheduler": stats["scheduler"],
        }

    return app
