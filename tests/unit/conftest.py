"""Shared fixtures for signalbox unit tests."""

from __future__ import annotations

import logging

import pytest

from signalbox.collectors.errors import ErrorCollector
from signalbox.collectors.usage import UsageCollector
from signalbox.config import CollectorConfig
from signalbox.connectivity import ConnectivityMonitor
from signalbox.environment import StaticEnvironment
from signalbox.observation import ManualObservationSource
from signalbox.records import MemorySnapshot, PerformanceSnapshot, RecordContext
from signalbox.session import MemoryStorage, SessionIdentity
from signalbox.sink import MemorySink

USAGE_STORE = "analytics_events"
ERROR_STORE = "error_logs"


@pytest.fixture
def sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def source() -> ManualObservationSource:
    return ManualObservationSource()


@pytest.fixture
def connectivity() -> ConnectivityMonitor:
    return ConnectivityMonitor()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def identity(storage: MemoryStorage) -> SessionIdentity:
    return SessionIdentity(storage)


@pytest.fixture
def environment() -> StaticEnvironment:
    return StaticEnvironment(
        context=RecordContext(
            url="https://crm.example.com/",
            user_agent="Mozilla/5.0 (X11; Linux x86_64)",
            language="en-GB",
            timezone="Europe/London",
        ),
        title="Home",
        performance=PerformanceSnapshot(load_time=1200, dom_content_loaded=800),
        memory_provider=lambda: MemorySnapshot(
            used_heap=10_000_000, total_heap=20_000_000, heap_limit=40_000_000
        ),
    )


@pytest.fixture
def usage_config() -> CollectorConfig:
    """Small queue; the periodic flush never fires during a test."""
    return CollectorConfig(store=USAGE_STORE, capacity=5, flush_interval=60.0)


@pytest.fixture
def error_config() -> CollectorConfig:
    return CollectorConfig(store=ERROR_STORE, capacity=5, flush_interval=60.0)


@pytest.fixture
def usage(sink, connectivity, identity, environment, usage_config) -> UsageCollector:
    return UsageCollector(
        sink,
        connectivity,
        identity,
        environment,
        usage_config,
        track_initial_page_view=False,
    )


@pytest.fixture
def errors(sink, connectivity, identity, environment, error_config) -> ErrorCollector:
    return ErrorCollector(sink, connectivity, identity, environment, error_config)


@pytest.fixture
def restore_logging():
    """Undo ``setup_logging`` changes to the ``signalbox`` logger tree."""
    root = logging.getLogger("signalbox")
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
