"""
Signalbox

Client-side telemetry: usage events, errors and performance metrics are
buffered in memory and delivered to a remote store in batches.

Example usage:
    >>> from signalbox import TelemetryRuntime, get_settings
    >>>
    >>> runtime = TelemetryRuntime.from_settings(get_settings())
    >>> await runtime.start()
    >>> runtime.usage.track_page_view()
    >>> runtime.errors.track_api_error(500, "/api/contacts", method="POST")
    >>> await runtime.stop()
"""

__version__ = "0.1.0"

from signalbox.collectors import ErrorCollector, PerformanceCollector, UsageCollector
from signalbox.config import CollectorConfig, PerformanceConfig, SignalboxSettings, get_settings
from signalbox.connectivity import ConnectivityMonitor
from signalbox.environment import StaticEnvironment
from signalbox.errors import (
    ConfigurationError,
    DeliveryTimeout,
    ObservationError,
    SignalboxError,
    SinkError,
)
from signalbox.faults import FaultHooks
from signalbox.observation import ManualObservationSource, Observation, ObservationSource
from signalbox.records import (
    AlertRecord,
    ConversionEvent,
    ErrorCategory,
    ErrorRecord,
    ErrorSeverity,
    EventRecord,
    EventType,
    MetricRecord,
    PerformanceCategory,
    RecordContext,
)
from signalbox.runtime import TelemetryRuntime
from signalbox.session import MemoryStorage, SessionIdentity
from signalbox.sink import HttpSink, MemorySink, RemoteSink

__all__ = [
    "__version__",
    # Runtime
    "TelemetryRuntime",
    "SignalboxSettings",
    "get_settings",
    "CollectorConfig",
    "PerformanceConfig",
    # Collectors
    "UsageCollector",
    "ErrorCollector",
    "PerformanceCollector",
    # Records
    "EventRecord",
    "ErrorRecord",
    "MetricRecord",
    "AlertRecord",
    "RecordContext",
    "EventType",
    "ConversionEvent",
    "ErrorSeverity",
    "ErrorCategory",
    "PerformanceCategory",
    # Plumbing
    "RemoteSink",
    "HttpSink",
    "MemorySink",
    "ConnectivityMonitor",
    "ObservationSource",
    "ManualObservationSource",
    "Observation",
    "SessionIdentity",
    "MemoryStorage",
    "StaticEnvironment",
    "FaultHooks",
    # Errors
    "SignalboxError",
    "ConfigurationError",
    "SinkError",
    "DeliveryTimeout",
    "ObservationError",
]
