"""
Exception hierarchy for signalbox.

Delivery failures are recovered locally by the collectors and never reach
instrumenting callers; these types exist so sinks and the delivery layer can
tell a retryable failure from a programming error.
"""

from __future__ import annotations


class SignalboxError(Exception):
    """Base class for all signalbox errors."""


class ConfigurationError(SignalboxError):
    """Invalid collector or sink configuration."""


class SinkError(SignalboxError):
    """The remote sink was unreachable or rejected a batch."""

    def __init__(
        self,
        store: str,
        reason: str,
        status_code: int | None = None,
    ) -> None:
        self.store = store
        self.reason = reason
        self.status_code = status_code
        suffix = f" (HTTP {status_code})" if status_code is not None else ""
        super().__init__(f"Sink store '{store}' failed: {reason}{suffix}")


class DeliveryTimeout(SinkError):
    """Delivery did not complete within the configured timeout."""

    def __init__(self, store: str, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(store, f"delivery timed out after {timeout:g}s")


class ObservationError(SignalboxError):
    """An observation source could not be subscribed to."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        super().__init__(f"Observation source '{source}': {reason}")
