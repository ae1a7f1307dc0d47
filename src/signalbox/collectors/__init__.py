"""
Telemetry collectors.

- UsageCollector: usage events (analytics_events)
- ErrorCollector: captured faults (error_logs)
- PerformanceCollector: timing metrics and threshold alerts
"""

from signalbox.collectors.errors import ErrorCollector
from signalbox.collectors.performance import PerformanceCollector
from signalbox.collectors.usage import UsageCollector

__all__ = ["ErrorCollector", "PerformanceCollector", "UsageCollector"]
