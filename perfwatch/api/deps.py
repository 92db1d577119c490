from fastapi import Request

from perfwatch.core import PerformanceMonitor


def get_monitor(request: Request) -> PerformanceMonitor:
    """The monitor owned by the application (set by create_app)"""
    return request.app.state.monitor
