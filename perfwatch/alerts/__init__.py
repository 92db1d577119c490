"""
Alert System
Deduplicated, lifecycle-tracked alerts raised by the detectors.

Structure:
    alerts/
    ├── models.py           → Alert, AlertType, AlertSeverity
    ├── manager.py          → AlertManager (dedup + lifecycle + listeners)
    └── recommendations.py  → Canned remediation hints

Usage:
    from perfwatch.alerts import AlertManager, AlertType, AlertSeverity

    alerts = AlertManager()
    alert = alerts.upsert("response_time", AlertType.THRESHOLD, AlertSeverity.CRITICAL, 6100, 5000)
    alerts.upsert("response_time", AlertType.THRESHOLD, AlertSeverity.CRITICAL, 6200, 5000)  # → None
    alerts.resolve(alert.id, resolved_by="oncall")
"""

from .models import (
    Alert,
    AlertType,
    AlertSeverity,
)

from .manager import (
    AlertManager,
    AlertListener,
)

__all__ = [
    # Models
    "Alert",
    "AlertType",
    "AlertSeverity",
    # Manager
    "AlertManager",
    "AlertListener",
]
