"""
Environment snapshots.

Every record carries a ``RecordContext`` captured at creation time; error
records additionally carry a ``PerformanceSnapshot`` of the page. An
``Environment`` is whatever can answer those questions: a browser bridge in
production, ``StaticEnvironment`` in tests and server-side hosts.
"""

from __future__ import annotations

import locale
import platform
import tracemalloc
from collections.abc import Callable
from datetime import datetime
from typing import Protocol, runtime_checkable
from urllib.parse import urlsplit

from signalbox.records import MemorySnapshot, PerformanceSnapshot, RecordContext

MemoryProvider = Callable[[], MemorySnapshot | None]


@runtime_checkable
class Environment(Protocol):
    @property
    def title(self) -> str: ...

    def capture_context(self) -> RecordContext: ...

    def performance_snapshot(self) -> PerformanceSnapshot: ...

    def memory_snapshot(self) -> MemorySnapshot | None: ...


class StaticEnvironment:
    """
    Environment whose values are set by the host.

    ``navigate`` moves to a new location and keeps the previous one as the
    referrer, so page-view sequences look like a real browsing session.
    """

    def __init__(
        self,
        context: RecordContext | None = None,
        title: str = "",
        performance: PerformanceSnapshot | None = None,
        memory_provider: MemoryProvider | None = None,
    ):
        self.context = context or RecordContext()
        self._title = title
        self.performance = performance or PerformanceSnapshot()
        self._memory_provider = memory_provider

    @classmethod
    def from_process(cls, url: str = "", title: str = "") -> StaticEnvironment:
        """Describe the current Python process (server-side hosts)."""
        from signalbox import __version__

        language = locale.getlocale()[0] or ""
        tz = datetime.now().astimezone().tzname() or ""
        user_agent = (
            f"signalbox/{__version__} Python/{platform.python_version()} "
            f"({platform.system()} {platform.machine()})"
        )
        context = RecordContext(url=url, user_agent=user_agent, language=language, timezone=tz)
        return cls(context=context, title=title, memory_provider=traced_memory)

    @property
    def title(self) -> str:
        return self._title

    @property
    def path(self) -> str:
        return urlsplit(self.context.url).path or "/"

    def navigate(self, url: str, title: str | None = None) -> None:
        self.context = self.context.model_copy(update={"url": url, "referrer": self.context.url})
        if title is not None:
            self._title = title

    def capture_context(self) -> RecordContext:
        return self.context

    def performance_snapshot(self) -> PerformanceSnapshot:
        return self.performance.model_copy(update={"memory": self.memory_snapshot()})

    def memory_snapshot(self) -> MemorySnapshot | None:
        if self._memory_provider is None:
            return None
        return self._memory_provider()


def traced_memory() -> MemorySnapshot | None:
    """Heap usage from tracemalloc, when tracing is enabled."""
    if not tracemalloc.is_tracing():
        return None
    current, peak = tracemalloc.get_traced_memory()
    return MemorySnapshot(used_heap=current, total_heap=peak)


def page_name(url: str) -> str:
    """Short page name for a URL: ``/`` is ``homepage``, otherwise the path."""
    path = urlsplit(url).path
    if path in ("", "/"):
        return "homepage"
    return path.strip("/") or "unknown"
