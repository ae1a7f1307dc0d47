"""
Error collector.

Captures uncaught exceptions, unhandled rejections and component-boundary
faults (via a fault ``ObservationSource``), plus errors reported explicitly
by the application: API, network, performance and user-interaction errors.
Each error is enriched with the current context and a page performance
snapshot before it is buffered for the error store (``error_logs``).

A ``critical`` error is flushed immediately; everything else waits for the
periodic flush (30s by default) or for the buffer to fill.
"""

from __future__ import annotations

import logging
import traceback
from collections import Counter
from datetime import timedelta
from typing import Any

import httpx

from signalbox.config import CollectorConfig
from signalbox.connectivity import ConnectivityMonitor
from signalbox.delivery import BufferedCollector, never_raises
from signalbox.environment import Environment
from signalbox.logging import get_errors_logger, log_with_context
from signalbox.observation import Observation, ObservationSource, Subscription
from signalbox.records import ErrorCategory, ErrorRecord, ErrorSeverity, utc_now
from signalbox.session import SessionIdentity
from signalbox.sink import RemoteSink

STATISTICS_WINDOW = timedelta(hours=24)

FAULT_ENTRY_TYPES = ("error", "unhandledrejection", "component-error")


def default_error_config() -> CollectorConfig:
    return CollectorConfig(store="error_logs", capacity=100, flush_interval=30.0)


def severity_for_status(status: int | None) -> ErrorSeverity:
    """HTTP status to severity: 5xx high, 4xx medium, anything else low."""
    if status is not None and status >= 500:
        return ErrorSeverity.HIGH
    if status is not None and status >= 400:
        return ErrorSeverity.MEDIUM
    return ErrorSeverity.LOW


class ErrorCollector(BufferedCollector[ErrorRecord]):
    def __init__(
        self,
        sink: RemoteSink,
        connectivity: ConnectivityMonitor,
        identity: SessionIdentity,
        environment: Environment,
        config: CollectorConfig | None = None,
        fault_source: ObservationSource | None = None,
    ):
        """
        Args:
            sink: Remote sink for delivery
            connectivity: Shared connectivity monitor
            identity: Session/user lookup
            environment: Context and performance snapshot provider
            config: Buffer/flush settings (capacity 100, every 30s by default)
            fault_source: Source of uncaught faults; see ``signalbox.faults``
        """
        super().__init__(sink, connectivity, config or default_error_config(), get_errors_logger())
        self.identity = identity
        self.environment = environment
        self.fault_source = fault_source
        self._fault_subscription: Subscription | None = None

    def _on_start(self) -> None:
        if self.fault_source is not None and self._fault_subscription is None:
            self._fault_subscription = self.fault_source.subscribe(
                list(FAULT_ENTRY_TYPES), self._on_faults
            )

    def _on_stop(self) -> None:
        if self.fault_source is not None and self._fault_subscription is not None:
            self.fault_source.unsubscribe(self._fault_subscription)
            self._fault_subscription = None

    def _is_urgent(self, record: ErrorRecord) -> bool:
        return record.severity == ErrorSeverity.CRITICAL

    # =========================================================================
    # Error Collection
    # =========================================================================

    def track_error(
        self,
        message: str,
        *,
        severity: ErrorSeverity | str | None = None,
        category: ErrorCategory | str | None = None,
        stack: str | None = None,
        filename: str | None = None,
        lineno: int | None = None,
        colno: int | None = None,
        component_stack: str | None = None,
        additional_data: dict[str, Any] | None = None,
    ) -> str | None:
        """
        Record an error with context and a performance snapshot.

        Severity defaults to ``medium`` and category to ``script_fault``.

        Returns:
            Error ID, or None if the record could not be built
        """
        try:
            record = ErrorRecord(
                message=message,
                severity=ErrorSeverity(severity or ErrorSeverity.MEDIUM),
                category=ErrorCategory(category or ErrorCategory.SCRIPT_FAULT),
                stack=stack,
                filename=filename,
                lineno=lineno,
                colno=colno,
                component_stack=component_stack,
                additional_data=dict(additional_data or {}),
                session_id=self.identity.session_id,
                user_id=self.identity.user_id,
                context=self.environment.capture_context(),
                performance=self.environment.performance_snapshot(),
                is_online=self.connectivity.is_online,
            )
        except Exception:
            self.logger.warning("Dropped error report: could not build record", exc_info=True)
            return None

        self._enqueue(record)
        level = logging.WARNING
        if record.severity in (ErrorSeverity.HIGH, ErrorSeverity.CRITICAL):
            level = logging.ERROR
        log_with_context(
            self.logger,
            level,
            f"Error tracked: {record.message}",
            error_id=record.id,
            severity=record.severity.value,
            category=record.category.value,
        )
        return record.id

    @never_raises
    def track_exception(
        self,
        exc: BaseException,
        *,
        severity: ErrorSeverity | str = ErrorSeverity.HIGH,
        category: ErrorCategory | str = ErrorCategory.SCRIPT_FAULT,
        additional_data: dict[str, Any] | None = None,
    ) -> str | None:
        """Record a Python exception, including its traceback and origin."""
        frames = traceback.extract_tb(exc.__traceback__) if exc.__traceback__ else []
        origin = frames[-1] if frames else None
        return self.track_error(
            str(exc) or type(exc).__name__,
            severity=severity,
            category=category,
            stack="".join(traceback.format_exception(exc)),
            filename=origin.filename if origin else None,
            lineno=origin.lineno if origin else None,
            colno=origin.colno if origin else None,
            additional_data={"exception_type": type(exc).__name__, **(additional_data or {})},
        )

    @never_raises
    def track_api_error(
        self,
        status: int | None,
        url: str,
        method: str = "GET",
        message: str | None = None,
        status_text: str | None = None,
        request_data: Any = None,
        response_data: Any = None,
        stack: str | None = None,
    ) -> str | None:
        return self.track_error(
            message or "API Error",
            stack=stack,
            category=ErrorCategory.API,
            severity=severity_for_status(status),
            additional_data={
                "url": url,
                "method": method,
                "status": status,
                "status_text": status_text,
                "request_data": request_data,
                "response_data": response_data,
            },
        )

    @never_raises
    def track_http_response(self, response: httpx.Response) -> str | None:
        """Record a failed httpx response as an API error."""
        request = response.request
        return self.track_api_error(
            response.status_code,
            str(request.url),
            method=request.method,
            message=f"{request.method} {request.url.path} returned {response.status_code}",
            status_text=response.reason_phrase,
            response_data=response.text[:2000],
        )

    @never_raises
    def track_network_error(
        self,
        url: str,
        method: str = "GET",
        message: str | None = None,
        timeout: float | None = None,
        retry_count: int | None = None,
    ) -> str | None:
        return self.track_error(
            message or "Network Error",
            category=ErrorCategory.NETWORK,
            severity=ErrorSeverity.MEDIUM,
            additional_data={
                "url": url,
                "method": method,
                "timeout": timeout,
                "retry_count": retry_count,
            },
        )

    @never_raises
    def track_performance_error(
        self,
        metric: str,
        value: float,
        threshold: float | None = None,
        message: str | None = None,
        severity: ErrorSeverity | str = ErrorSeverity.LOW,
    ) -> str | None:
        return self.track_error(
            message or "Performance Error",
            category=ErrorCategory.PERFORMANCE,
            severity=severity,
            additional_data={
                "metric": metric,
                "value": value,
                "threshold": threshold,
                "url": self.environment.capture_context().url,
            },
        )

    @never_raises
    def track_user_interaction_error(
        self,
        action: str,
        element: str | None = None,
        page: str | None = None,
        message: str | None = None,
    ) -> str | None:
        return self.track_error(
            message or "User Interaction Error",
            category=ErrorCategory.USER_INTERACTION,
            severity=ErrorSeverity.LOW,
            additional_data={
                "action": action,
                "element": element,
                "page": page,
                "user_agent": self.environment.capture_context().user_agent,
            },
        )

    # =========================================================================
    # Global fault sources
    # =========================================================================

    def _on_faults(self, observations: list[Observation]) -> None:
        for obs in observations:
            if obs.entry_type == "error":
                self.track_error(
                    obs.name or "Uncaught error",
                    severity=ErrorSeverity.HIGH,
                    category=ErrorCategory.SCRIPT_FAULT,
                    stack=obs.get("stack"),
                    filename=obs.get("filename"),
                    lineno=obs.get("lineno"),
                    colno=obs.get("colno"),
                    additional_data={"exception_type": obs.get("exception_type")},
                )
            elif obs.entry_type == "unhandledrejection":
                self.track_error(
                    obs.name or "Unhandled Promise Rejection",
                    severity=ErrorSeverity.HIGH,
                    category=ErrorCategory.SCRIPT_FAULT,
                    stack=obs.get("stack"),
                    additional_data={"reason": obs.get("reason")},
                )
            elif obs.entry_type == "component-error":
                self.track_error(
                    obs.name or "Component error",
                    severity=ErrorSeverity.HIGH,
                    category=ErrorCategory.SCRIPT_FAULT,
                    stack=obs.get("stack"),
                    component_stack=obs.get("component_stack"),
                    additional_data={
                        "component_name": obs.get("component_name"),
                        "error_boundary": obs.get("error_boundary"),
                    },
                )

    # =========================================================================
    # Statistics
    # =========================================================================

    async def get_error_statistics(self) -> dict[str, Any] | None:
        """
        Counts over the last 24 hours of delivered errors.

        Returns:
            total, by_severity, by_category and last_24_hours, or None if the
            sink could not be read
        """
        try:
            rows = await self.sink.select(self.store, utc_now() - STATISTICS_WINDOW)
        except Exception:
            self.logger.error("Failed to load error statistics", exc_info=True)
            return None

        return {
            "total": len(rows),
            "by_severity": dict(Counter(row.get("severity") for row in rows)),
            "by_category": dict(Counter(row.get("category") for row in rows)),
            "last_24_hours": len(rows),
        }
