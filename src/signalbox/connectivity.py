"""
Connectivity monitor.

Tracks a single online/offline flag shared by every collector. The flag is
driven by ``online``/``offline`` observations (subscribed once, at
construction) or set directly by the host. Listeners are told about real
transitions only; repeating the current state is a no-op.
"""

from __future__ import annotations

from collections.abc import Callable

from signalbox.logging import get_delivery_logger
from signalbox.observation import Observation, ObservationSource, Subscription

logger = get_delivery_logger()

ConnectivityListener = Callable[[bool], None]

ONLINE = "online"
OFFLINE = "offline"


class ConnectivityMonitor:
    def __init__(self, source: ObservationSource | None = None, online: bool = True):
        self._online = online
        self._listeners: list[ConnectivityListener] = []
        self._source = source
        self._subscription: Subscription | None = None
        if source is not None:
            self._subscription = source.subscribe([ONLINE, OFFLINE], self._on_observations)

    @property
    def is_online(self) -> bool:
        return self._online

    def add_listener(self, listener: ConnectivityListener) -> Callable[[], None]:
        """Register a transition listener. Returns a function that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def set_online(self, online: bool) -> None:
        if online == self._online:
            return
        self._online = online
        logger.info("Connectivity changed: %s", ONLINE if online else OFFLINE)
        for listener in list(self._listeners):
            try:
                listener(online)
            except Exception:
                logger.warning("Connectivity listener failed", exc_info=True)

    def _on_observations(self, observations: list[Observation]) -> None:
        for obs in observations:
            if obs.entry_type == ONLINE:
                self.set_online(True)
            elif obs.entry_type == OFFLINE:
                self.set_online(False)

    def close(self) -> None:
        """Detach from the observation source."""
        if self._source is not None and self._subscription is not None:
            self._source.unsubscribe(self._subscription)
            self._subscription = None
