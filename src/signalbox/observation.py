"""
Observation sources.

Collectors never read timing, fault or connectivity signals directly. They
subscribe to an ``ObservationSource`` by entry type and receive batches of
``Observation`` objects, mirroring how a browser PerformanceObserver delivers
entry lists. The host application (or a test) owns the source and decides
where observations come from.

Entry types used by signalbox:

    largest-contentful-paint, paint, first-input, layout-shift, event,
    resource, navigation, longtask               (performance collector)
    error, unhandledrejection, component-error   (error collector)
    online, offline                              (connectivity monitor)
"""

from __future__ import annotations

import itertools
from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from signalbox.logging import get_logger

logger = get_logger("Observation")


@dataclass(frozen=True)
class Observation:
    """One raw signal from an observation source."""

    entry_type: str
    name: str = ""
    start_time: float = 0.0
    duration: float = 0.0
    value: float = 0.0
    attributes: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)


ObservationCallback = Callable[[list[Observation]], None]


@dataclass(frozen=True)
class Subscription:
    """Handle returned by ``subscribe``; pass it back to ``unsubscribe``."""

    id: int
    entry_types: tuple[str, ...]


@runtime_checkable
class ObservationSource(Protocol):
    def subscribe(
        self,
        entry_types: Sequence[str],
        callback: ObservationCallback,
        buffered: bool = False,
    ) -> Subscription: ...

    def unsubscribe(self, handle: Subscription) -> None: ...


class ManualObservationSource:
    """
    Observation source fed programmatically.

    Host integrations push observations with ``emit``; tests use it as a
    deterministic fake. Observations are retained per entry type so a late
    subscriber can ask for ``buffered`` delivery of what it missed (a page's
    navigation entry is usually recorded before monitoring starts).

    A callback that raises is logged and does not affect other subscribers.
    """

    def __init__(self, history_limit: int = 500) -> None:
        self._ids = itertools.count(1)
        self._callbacks: dict[int, tuple[Subscription, ObservationCallback]] = {}
        self._history: dict[str, list[Observation]] = defaultdict(list)
        self._history_limit = history_limit

    @property
    def subscription_count(self) -> int:
        return len(self._callbacks)

    def subscribe(
        self,
        entry_types: Sequence[str],
        callback: ObservationCallback,
        buffered: bool = False,
    ) -> Subscription:
        handle = Subscription(id=next(self._ids), entry_types=tuple(entry_types))
        self._callbacks[handle.id] = (handle, callback)

        if buffered:
            backlog = [obs for t in handle.entry_types for obs in self._history.get(t, [])]
            if backlog:
                self._dispatch(handle, callback, backlog)
        return handle

    def unsubscribe(self, handle: Subscription) -> None:
        self._callbacks.pop(handle.id, None)

    def emit(self, observations: Observation | Iterable[Observation]) -> None:
        """Deliver one observation or a batch to every matching subscriber."""
        batch = [observations] if isinstance(observations, Observation) else list(observations)
        if not batch:
            return

        for obs in batch:
            history = self._history[obs.entry_type]
            history.append(obs)
            if len(history) > self._history_limit:
                del history[0]

        for handle, callback in list(self._callbacks.values()):
            matching = [obs for obs in batch if obs.entry_type in handle.entry_types]
            if matching:
                self._dispatch(handle, callback, matching)

    def _dispatch(
        self,
        handle: Subscription,
        callback: ObservationCallback,
        observations: list[Observation],
    ) -> None:
        try:
            callback(observations)
        except Exception:
            logger.warning(
                "Observation callback failed for %s",
                ",".join(handle.entry_types),
                exc_info=True,
            )
