"""Exceptions raised by the monitoring engine."""


class MonitoringError(Exception):
    """Base exception for monitoring operations."""
    pass


class UnknownHorizonError(MonitoringError, ValueError):
    """Raised for an unsupported time horizon or timeframe string."""

    def __init__(self, value: str, allowed=None):
        self.value = value
        self.allowed = list(allowed) if allowed else []
        message = f"Unsupported horizon: {value!r}"
        if self.allowed:
            message += f". Use: {', '.join(self.allowed)}"
        super().__init__(message)
