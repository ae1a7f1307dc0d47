"""
Performance collector.

Observes page-load and interaction performance through an
``ObservationSource`` and keeps the latest value of every metric for
dashboard reads. Each recorded metric is:

1. stored in the metrics map (latest value per name, not a growing queue)
2. forwarded to the usage collector as a ``performance`` event
3. classified by the threshold evaluator; a ``needs_improvement`` or
   ``poor`` value becomes an alert, tracked as a ``performance_alert`` usage
   event, and a ``poor`` value is also reported to the error collector as a
   high-severity ``performance`` error.

Observers (each can be started and stopped on its own):

    LCP, FCP, FID, CLS, INP    core web vitals
    resource                   slow (>1s) and large (>100KB) resources
    navigation                 TTFB, approximate TTI and FMP
    longtask, layout_shift     raw long tasks and individual layout shifts
    memory                     heap snapshot every ``memory_interval`` seconds
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from typing import Any

from signalbox.collectors.errors import ErrorCollector
from signalbox.collectors.usage import UsageCollector
from signalbox.config import PerformanceConfig
from signalbox.environment import Environment
from signalbox.errors import ObservationError
from signalbox.logging import get_performance_logger, log_with_context
from signalbox.observation import Observation, ObservationSource, Subscription
from signalbox.records import AlertRecord, EventType, MetricRecord
from signalbox.session import SessionIdentity
from signalbox.thresholds import ThresholdBreach, ThresholdEvaluator
from signalbox.vitals import LayoutShiftSessions, NavigationTiming, ResourceTiming

logger = get_performance_logger()

OBSERVER_ENTRY_TYPES: dict[str, tuple[str, ...]] = {
    "LCP": ("largest-contentful-paint",),
    "FCP": ("paint",),
    "FID": ("first-input",),
    "CLS": ("layout-shift",),
    "INP": ("event",),
    "resource": ("resource",),
    "navigation": ("navigation",),
    "longtask": ("longtask",),
    "layout_shift": ("layout-shift",),
}

MEMORY_OBSERVER = "memory"

OBSERVERS: tuple[str, ...] = (*OBSERVER_ENTRY_TYPES, MEMORY_OBSERVER)

# Entries recorded before monitoring starts are replayed for these observers
_BUFFERED_OBSERVERS = frozenset({"LCP", "FCP", "navigation"})


class PerformanceCollector:
    def __init__(
        self,
        source: ObservationSource,
        usage: UsageCollector,
        errors: ErrorCollector,
        identity: SessionIdentity,
        environment: Environment,
        config: PerformanceConfig | None = None,
    ):
        self.source = source
        self.usage = usage
        self.errors = errors
        self.identity = identity
        self.environment = environment
        self.config = config or PerformanceConfig()

        self.evaluator = ThresholdEvaluator(self.config.thresholds)
        self.metrics: dict[str, MetricRecord] = {}
        self.alerts: deque[AlertRecord] = deque(maxlen=self.config.max_alerts)
        self.is_monitoring = False

        self._subscriptions: dict[str, Subscription] = {}
        self._memory_task: asyncio.Task[None] | None = None
        self._cls = LayoutShiftSessions()
        self._handlers: dict[str, Callable[[list[Observation]], None]] = {
            "LCP": self._on_lcp,
            "FCP": self._on_fcp,
            "FID": self._on_fid,
            "CLS": self._on_cls,
            "INP": self._on_inp,
            "resource": self._on_resource,
            "navigation": self._on_navigation,
            "longtask": self._on_longtask,
            "layout_shift": self._on_layout_shift,
        }

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start_monitoring(self) -> None:
        if self.is_monitoring:
            return

        self.is_monitoring = True
        for name in OBSERVERS:
            try:
                self.start_observer(name)
            except ObservationError:
                logger.warning("Observer %s not started", name, exc_info=True)
        logger.info("Performance monitoring started")

    def stop_monitoring(self) -> None:
        """Detach every observer. Safe to call repeatedly."""
        for name in list(self._subscriptions):
            self.stop_observer(name)
        self.stop_observer(MEMORY_OBSERVER)

        if self.is_monitoring:
            self.is_monitoring = False
            logger.info("Performance monitoring stopped")

    @property
    def active_observers(self) -> list[str]:
        active = list(self._subscriptions)
        if self._memory_task is not None and not self._memory_task.done():
            active.append(MEMORY_OBSERVER)
        return active

    def start_observer(self, name: str) -> None:
        if name == MEMORY_OBSERVER:
            self._start_memory_observer()
            return
        if name not in OBSERVER_ENTRY_TYPES:
            raise ObservationError(name, "unknown observer")
        if name in self._subscriptions:
            return

        try:
            self._subscriptions[name] = self.source.subscribe(
                OBSERVER_ENTRY_TYPES[name],
                self._handlers[name],
                buffered=name in _BUFFERED_OBSERVERS,
            )
        except Exception as e:
            raise ObservationError(name, str(e)) from e

    def stop_observer(self, name: str) -> None:
        if name == MEMORY_OBSERVER:
            if self._memory_task is not None:
                self._memory_task.cancel()
                self._memory_task = None
            return

        handle = self._subscriptions.pop(name, None)
        if handle is not None:
            self.source.unsubscribe(handle)

    def _start_memory_observer(self) -> None:
        if self._memory_task is not None and not self._memory_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            raise ObservationError(MEMORY_OBSERVER, "requires a running event loop") from None
        self._memory_task = loop.create_task(self._memory_loop())

    async def _memory_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.memory_interval)
            snapshot = self.environment.memory_snapshot()
            if snapshot is None:
                continue
            self.record_metric(
                "memory_usage",
                snapshot.used_heap,
                {"total": snapshot.total_heap, "limit": snapshot.heap_limit},
            )

    # =========================================================================
    # Recording
    # =========================================================================

    def record_metric(
        self,
        name: str,
        value: float,
        metadata: dict[str, Any] | None = None,
    ) -> MetricRecord | None:
        """
        Store the latest value for ``name``, forward it and check thresholds.

        Returns:
            The stored metric, or None if it could not be recorded
        """
        try:
            metric = MetricRecord(
                name=name,
                value=value,
                metadata=dict(metadata or {}),
                session_id=self.identity.session_id,
                user_id=self.identity.user_id,
                context=self.environment.capture_context(),
            )
        except Exception:
            logger.warning("Dropped metric %s: could not build record", name, exc_info=True)
            return None

        self.metrics[name] = metric
        self.usage.track_performance(name, metric.value, metric.metadata)

        breach = self.evaluator.evaluate(name, metric.value)
        if breach is not None:
            self._create_alert(breach)

        log_with_context(logger, logging.DEBUG, f"Metric recorded: {name}", value=metric.value)
        return metric

    def _create_alert(self, breach: ThresholdBreach) -> AlertRecord:
        alert = AlertRecord(
            metric_name=breach.metric_name,
            value=breach.value,
            threshold=breach.threshold,
            category=breach.category,
            severity=breach.severity,
            session_id=self.identity.session_id,
            user_id=self.identity.user_id,
            context=self.environment.capture_context(),
        )
        self.alerts.append(alert)

        self.usage.track_event(
            EventType.PERFORMANCE_ALERT,
            {
                "alert_id": alert.id,
                "metric_name": alert.metric_name,
                "value": alert.value,
                "threshold": alert.threshold,
                "category": alert.category.value,
                "severity": alert.severity.value,
                "url": alert.context.url,
            },
        )

        if breach.is_poor:
            self.errors.track_performance_error(
                metric=breach.metric_name,
                value=breach.value,
                threshold=breach.threshold,
                message=f"Performance threshold exceeded: {breach.metric_name}",
                severity=breach.severity,
            )

        log_with_context(
            logger,
            logging.WARNING,
            f"Performance alert: {alert.metric_name} is {alert.category.value}",
            value=alert.value,
            threshold=alert.threshold,
        )
        return alert

    # =========================================================================
    # Observation handlers
    # =========================================================================

    def _on_lcp(self, entries: list[Observation]) -> None:
        last = entries[-1]
        self.record_metric(
            "LCP",
            last.start_time,
            {"element": last.get("element"), "url": last.get("url"), "size": last.get("size")},
        )

    def _on_fcp(self, entries: list[Observation]) -> None:
        for entry in entries:
            if entry.name == "first-contentful-paint":
                self.record_metric("FCP", entry.start_time)
                return

    def _on_fid(self, entries: list[Observation]) -> None:
        for entry in entries:
            delay = float(entry.get("processing_start", entry.start_time)) - entry.start_time
            self.record_metric(
                "FID", delay, {"event_type": entry.name, "target": entry.get("target")}
            )

    def _on_cls(self, entries: list[Observation]) -> None:
        for entry in entries:
            cls_value = self._cls.add(
                entry.start_time,
                entry.value,
                had_recent_input=bool(entry.get("had_recent_input", False)),
            )
            if cls_value is not None:
                self.record_metric("CLS", cls_value, {"sources": entry.get("sources")})

    def _on_inp(self, entries: list[Observation]) -> None:
        for entry in entries:
            latency = float(entry.get("processing_end", entry.start_time)) - entry.start_time
            self.record_metric(
                "INP",
                latency,
                {
                    "event_type": entry.name,
                    "target": entry.get("target"),
                    "interaction_id": entry.get("interaction_id"),
                },
            )

    def _on_resource(self, entries: list[Observation]) -> None:
        for entry in entries:
            resource = ResourceTiming.from_observation(entry)
            if resource.is_slow:
                self.record_metric("slow_resource", resource.duration, resource.as_metadata())
            if resource.is_large:
                self.record_metric("large_resource", resource.size, resource.as_metadata())

    def _on_navigation(self, entries: list[Observation]) -> None:
        navigation = NavigationTiming.from_observation(entries[-1])
        self.record_metric("TTFB", navigation.ttfb)
        self.record_metric("TTI", navigation.tti)
        self.record_metric("FMP", navigation.fmp)

    def _on_longtask(self, entries: list[Observation]) -> None:
        for entry in entries:
            self.record_metric(
                "long_task", entry.duration, {"start_time": entry.start_time, "name": entry.name}
            )

    def _on_layout_shift(self, entries: list[Observation]) -> None:
        for entry in entries:
            self.record_metric("layout_shift", entry.value, {"sources": entry.get("sources")})

    # =========================================================================
    # Dashboard projections
    # =========================================================================

    def _value(self, name: str) -> float:
        metric = self.metrics.get(name)
        return metric.value if metric else 0

    def get_performance_summary(self) -> dict[str, Any]:
        return {
            "metrics": {name: metric.to_row() for name, metric in self.metrics.items()},
            "alerts": [alert.to_row() for alert in self.alerts],
            "is_monitoring": self.is_monitoring,
            "thresholds": self.evaluator.thresholds,
        }

    def get_dashboard_data(self) -> dict[str, Any]:
        memory = self.metrics.get("memory_usage")
        return {
            "core_web_vitals": {
                name: self._value(name) for name in ("LCP", "FCP", "TBT", "CLS", "FID", "INP")
            },
            "navigation": {name: self._value(name) for name in ("TTFB", "TTI", "FMP")},
            "resources": {
                "slow_resources": self._value("slow_resource"),
                "large_resources": self._value("large_resource"),
            },
            "alerts": len(self.alerts),
            "memory": (
                {"used": memory.value, **memory.metadata} if memory is not None else None
            ),
        }

    def clear_data(self) -> None:
        self.metrics.clear()
        self.alerts.clear()
        self._cls = LayoutShiftSessions()
