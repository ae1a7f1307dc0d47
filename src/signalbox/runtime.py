"""
Telemetry runtime.

Builds the shared pieces once (sink, connectivity monitor, session identity,
environment, fault hooks) and wires the three collectors to them. The host
owns a single ``TelemetryRuntime`` for the life of the page or process.

Example:
    >>> runtime = TelemetryRuntime.from_settings(get_settings())
    >>> async with runtime:
    ...     runtime.usage.track_button_click("signup")
    ...     runtime.performance.record_metric("LCP", 2100)
"""

from __future__ import annotations

from types import TracebackType

from signalbox.collectors.errors import ErrorCollector, default_error_config
from signalbox.collectors.performance import PerformanceCollector
from signalbox.collectors.usage import UsageCollector, default_usage_config
from signalbox.config import CollectorConfig, PerformanceConfig, SignalboxSettings
from signalbox.connectivity import ConnectivityMonitor
from signalbox.environment import Environment, StaticEnvironment
from signalbox.faults import FaultHooks
from signalbox.logging import get_logger, setup_logging
from signalbox.observation import ManualObservationSource, ObservationSource
from signalbox.session import KeyValueStorage, SessionIdentity
from signalbox.sink import HttpSink, MemorySink, RemoteSink

logger = get_logger("Runtime")


class TelemetryRuntime:
    def __init__(
        self,
        sink: RemoteSink | None = None,
        source: ObservationSource | None = None,
        environment: Environment | None = None,
        session_storage: KeyValueStorage | None = None,
        user_storage: KeyValueStorage | None = None,
        usage_config: CollectorConfig | None = None,
        error_config: CollectorConfig | None = None,
        performance_config: PerformanceConfig | None = None,
        install_fault_hooks: bool = True,
        track_initial_page_view: bool = True,
    ):
        """
        Args:
            sink: Remote sink; an in-memory sink when omitted
            source: Timing and connectivity observations
            environment: Context provider; the current process when omitted
            session_storage: Where the session id lives
            user_storage: Where the authenticated user id lives
            usage_config: Usage collector buffering
            error_config: Error collector buffering
            performance_config: Performance collector settings
            install_fault_hooks: Capture uncaught exceptions process-wide
            track_initial_page_view: Record a page view when started
        """
        self.sink = sink or MemorySink()
        self.source = source or ManualObservationSource()
        self.environment = environment or StaticEnvironment.from_process()
        self.identity = SessionIdentity(session_storage, user_storage)
        self.connectivity = ConnectivityMonitor(self.source)
        self.fault_hooks = FaultHooks()
        self._install_fault_hooks = install_fault_hooks
        self._started = False

        self.usage = UsageCollector(
            self.sink,
            self.connectivity,
            self.identity,
            self.environment,
            usage_config or default_usage_config(),
            track_initial_page_view=track_initial_page_view,
        )
        self.errors = ErrorCollector(
            self.sink,
            self.connectivity,
            self.identity,
            self.environment,
            error_config or default_error_config(),
            fault_source=self.fault_hooks.source,
        )
        self.performance = PerformanceCollector(
            self.source,
            self.usage,
            self.errors,
            self.identity,
            self.environment,
            performance_config,
        )

    @classmethod
    def from_settings(
        cls,
        settings: SignalboxSettings,
        source: ObservationSource | None = None,
        environment: Environment | None = None,
    ) -> TelemetryRuntime:
        """Build a runtime from environment settings and configure logging."""
        setup_logging(log_dir=settings.log_dir, level=settings.log_level)

        sink: RemoteSink
        if settings.sink_url:
            sink = HttpSink(
                settings.sink_url,
                api_key=settings.sink_api_key,
                timeout=settings.delivery_timeout,
            )
        else:
            logger.warning("SIGNALBOX_SINK_URL not set; records are kept in memory")
            sink = MemorySink()

        return cls(
            sink=sink,
            source=source,
            environment=environment,
            usage_config=settings.usage_config(),
            error_config=settings.error_config(),
            performance_config=settings.performance_config(),
        )

    @property
    def is_started(self) -> bool:
        return self._started

    async def start(self) -> None:
        if self._started:
            return

        if self._install_fault_hooks:
            self.fault_hooks.install()
        await self.errors.start()
        await self.usage.start()
        self.performance.start_monitoring()
        self._started = True
        logger.info("Telemetry started (session %s)", self.identity.session_id)

    async def stop(self) -> None:
        """Stop observing and make a final flush of both queues."""
        if not self._started:
            return

        self.performance.stop_monitoring()
        await self.usage.stop()
        await self.errors.stop()
        self.fault_hooks.uninstall()
        if isinstance(self.sink, HttpSink):
            await self.sink.aclose()
        self._started = False
        logger.info("Telemetry stopped")

    async def __aenter__(self) -> TelemetryRuntime:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()

    # =========================================================================
    # Page lifecycle
    # =========================================================================

    async def on_visibility_change(self, hidden: bool) -> None:
        """Record the change; a hidden page flushes both queues."""
        self.usage.track_visibility_change(hidden)
        if hidden:
            await self.flush()

    async def on_unload(self) -> None:
        await self.usage.handle_page_unload()
        await self.errors.flush()

    async def flush(self) -> int:
        return await self.usage.flush() + await self.errors.flush()

    def set_user_id(self, user_id: str | None) -> None:
        self.identity.set_user_id(user_id)
