"""
Database Layer
Optional best-effort persistence of metric records.
"""

from .sqlite import SQLiteMetricSink

__all__ = ["SQLiteMetricSink"]
