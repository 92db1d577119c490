import threading
from collections import deque
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog

from perfwatch.core.models import utcnow

from .models import Alert, AlertSeverity, AlertType

logger = structlog.get_logger(__name__)

AlertListener = Callable[[Alert], None]


class AlertManager:
    def __init__(self, history_size: int = 500):
        self._alerts: Dict[str, Alert] = {}
        self._active: Dict[Tuple[str, AlertType], str] = {}
        self._history: deque = deque(maxlen=history_size)
        self._listeners: List[AlertListener] = []
        self._lock = threading.RLock()
        self._stats = {
            "created": 0,
            "deduplicated": 0,
            "resolved": 0,
            "purged": 0,
            "start_time": utcnow(),
        }

    def upsert(
        self,
        metric: str,
        alert_type: AlertType,
        severity: AlertSeverity,
        value: float,
        reference: Optional[float] = None,
        context: Optional[Dict[str, Any]] = None,
        recommendations: Optional[List[str]] = None,
        description: str = "",
    ) -> Optional[Alert]:
        """
        Create an alert unless one is already open for (metric, type).

        Returns the new alert, or None when the call was deduplicated.
        """
        alert_type = AlertType(alert_type)
        key = (metric, alert_type)

        with self._lock:
            if key in self._active:
                self._stats["deduplicated"] += 1
                return None

            alert = Alert(
                id="",
                metric=metric,
                type=alert_type,
                severity=AlertSeverity(severity),
                value=value,
                reference=reference,
                description=description,
                context=dict(context or {}),
                recommendations=list(recommendations or []),
            )
            self._alerts[alert.id] = alert
            self._active[key] = alert.id
            self._history.append(alert)
            self._stats["created"] += 1

        logger.warning(
            "alert_created",
            alert_id=alert.id,
            metric=metric,
            alert_type=alert_type.value,
            severity=alert.severity.value,
            value=value,
            reference=reference,
        )
        self._notify(alert)
        return alert

    def resolve(self, alert_id: str, resolved_by: Optional[str] = None) -> bool:
        with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None:
                return False
            if alert.resolved:
                return True
            alert.resolved = True
            alert.resolved_at = utcnow()
            alert.resolved_by = resolved_by or "system"
            if self._active.get(alert.key) == alert_id:
                del self._active[alert.key]
            self._stats["resolved"] += 1

        logger.info(
            "alert_resolved",
            alert_id=alert_id,
            alert_type=alert.type.value,
            severity=alert.severity.value,
            resolved_by=alert.resolved_by,
        )
        self._notify(alert)
        return True

    def get(self, alert_id: str) -> Optional[Alert]:
        with self._lock:
            return self._alerts.get(alert_id)

    def find_active(self, metric: str, alert_type: AlertType) -> Optional[Alert]:
        with self._lock:
            alert_id = self._active.get((metric, AlertType(alert_type)))
            return self._alerts.get(alert_id) if alert_id else None

    def list_active(self) -> List[Alert]:
        with self._lock:
            return [a for a in self._alerts.values() if not a.resolved]

    def list_all(self) -> List[Alert]:
        with self._lock:
            return list(self._alerts.values())

    def critical_active(self) -> List[Alert]:
        return [a for a in self.list_active() if a.severity == AlertSeverity.CRITICAL]

    def cleanup(self, max_age: timedelta, now: Optional[datetime] = None) -> int:
        """Remove alerts that are resolved AND older than max_age. Returns count removed."""
        cutoff = (now or utcnow()) - max_age
        with self._lock:
            stale = [
                alert_id for alert_id, alert in self._alerts.items()
                if alert.resolved and alert.created_at < cutoff
            ]
            for alert_id in stale:
                del self._alerts[alert_id]
            self._stats["purged"] += len(stale)
        if stale:
            logger.debug("alerts_purged", count=len(stale))
        return len(stale)

    def get_history(self, limit: int = 50) -> List[Alert]:
        """Most recently created first"""
        with self._lock:
            history = list(self._history)
        history.reverse()
        return history[:limit]

    def on_alert(self, callback: AlertListener) -> None:
        """Call `callback(alert)` whenever an alert is created or resolved"""
        with self._lock:
            self._listeners.append(callback)

    def remove_listener(self, callback: AlertListener) -> bool:
        with self._lock:
            try:
                self._listeners.remove(callback)
            except ValueError:
                return False
            return True

    def _notify(self, alert: Alert) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for callback in listeners:
            try:
                callback(alert)
            except Exception:
                logger.exception("alert_listener_failed", alert_id=alert.id)

    def clear(self) -> None:
        with self._lock:
            self._alerts.clear()
            self._active.clear()
            self._history.clear()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            uptime = (utcnow() - self._stats["start_time"]).total_seconds()
            return {
                **{k: v for k, v in self._stats.items() if k != "start_time"},
                "uptime_seconds": round(uptime, 2),
                "total": len(self._alerts),
                "active": len(self._active),
                "listeners": len(self._listeners),
            }
