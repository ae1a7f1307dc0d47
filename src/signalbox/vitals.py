"""
Derivations over raw timing observations.

- LayoutShiftSessions: CLS via session windows. A shift joins the current
  session when it starts less than 1s after the previous shift and less than
  5s after the session's first shift; otherwise it opens a new session. CLS is
  the largest session total seen so far.
- ResourceTiming: per-resource timings, type, and slow/large flags.
- NavigationTiming: TTFB plus approximate TTI and FMP from a navigation entry.

All times are milliseconds relative to navigation start.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from signalbox.observation import Observation

SESSION_GAP_MS = 1000.0
SESSION_SPAN_MS = 5000.0

SLOW_RESOURCE_MS = 1000.0
LARGE_RESOURCE_BYTES = 100_000


class LayoutShiftSessions:
    def __init__(self) -> None:
        self.value = 0.0
        self.session_value = 0.0
        self._session_start: float | None = None
        self._session_last: float | None = None
        self.session_count = 0

    def add(self, start_time: float, value: float, had_recent_input: bool = False) -> float | None:
        """
        Fold one layout-shift entry into the running sessions.

        Shifts right after user input are expected and ignored.

        Returns:
            The new CLS value when it increased, otherwise None.
        """
        if had_recent_input:
            return None

        if (
            self._session_start is not None
            and self._session_last is not None
            and start_time - self._session_last < SESSION_GAP_MS
            and start_time - self._session_start < SESSION_SPAN_MS
        ):
            self.session_value += value
        else:
            self.session_value = value
            self._session_start = start_time
            self.session_count += 1
        self._session_last = start_time

        if self.session_value > self.value:
            self.value = self.session_value
            return self.value
        return None


def resource_type(url: str) -> str:
    lowered = url.lower()
    if ".js" in lowered:
        return "javascript"
    if ".css" in lowered:
        return "stylesheet"
    if any(ext in lowered for ext in (".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg")):
        return "image"
    if any(ext in lowered for ext in (".woff", ".woff2", ".ttf", ".eot")):
        return "font"
    if "api/" in lowered or "/rest/v1/" in lowered:
        return "api"
    return "other"


def _span(obs: Observation, start: str, end: str) -> float:
    return float(obs.get(end, 0.0)) - float(obs.get(start, 0.0))


@dataclass
class ResourceTiming:
    name: str
    duration: float
    size: int
    type: str
    timing: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_observation(cls, obs: Observation) -> ResourceTiming:
        return cls(
            name=obs.name,
            duration=obs.duration,
            size=int(obs.get("transfer_size", 0) or 0),
            type=resource_type(obs.name),
            timing={
                "dns": _span(obs, "domain_lookup_start", "domain_lookup_end"),
                "tcp": _span(obs, "connect_start", "connect_end"),
                "request": _span(obs, "request_start", "response_start"),
                "response": _span(obs, "response_start", "response_end"),
            },
        )

    @property
    def is_slow(self) -> bool:
        return self.duration > SLOW_RESOURCE_MS

    @property
    def is_large(self) -> bool:
        return self.size > LARGE_RESOURCE_BYTES

    def as_metadata(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class NavigationTiming:
    ttfb: float
    tti: float
    fmp: float
    dns: float
    tcp: float
    request: float
    response: float
    dom: float
    load: float

    @classmethod
    def from_observation(cls, obs: Observation) -> NavigationTiming:
        navigation_start = float(obs.get("navigation_start", obs.start_time))
        dom_ready = float(obs.get("dom_content_loaded_event_end", 0.0))
        return cls(
            ttfb=float(obs.get("response_start", 0.0)) - navigation_start,
            # Both approximated by DOMContentLoaded
            tti=dom_ready - navigation_start,
            fmp=dom_ready - navigation_start,
            dns=_span(obs, "domain_lookup_start", "domain_lookup_end"),
            tcp=_span(obs, "connect_start", "connect_end"),
            request=_span(obs, "request_start", "response_start"),
            response=_span(obs, "response_start", "response_end"),
            dom=_span(obs, "dom_content_loaded_event_start", "dom_content_loaded_event_end"),
            load=_span(obs, "load_event_start", "load_event_end"),
        )
