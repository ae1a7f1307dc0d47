"""
Usage-event collector.

Captures discrete user and application events (page views, actions, form
submissions, conversions) for funnel and engagement analysis. Events are
buffered and delivered to the usage store (``analytics_events`` by default).

Every ``track_*`` method is fire-and-forget: it returns the new event id, or
None if the event could not be built, and never raises into the caller.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import timedelta
from typing import Any

from signalbox.config import CollectorConfig
from signalbox.connectivity import ConnectivityMonitor
from signalbox.delivery import BufferedCollector, never_raises
from signalbox.environment import Environment, page_name
from signalbox.logging import get_usage_logger, log_with_context
from signalbox.records import EventRecord, EventType, utc_now
from signalbox.sanitizer import sanitize_payload
from signalbox.session import SessionIdentity
from signalbox.sink import RemoteSink

DASHBOARD_WINDOW = timedelta(days=7)
TOP_N = 10


def default_usage_config() -> CollectorConfig:
    return CollectorConfig(store="analytics_events", capacity=50, flush_interval=10.0)


class UsageCollector(BufferedCollector[EventRecord]):
    """
    Buffers usage events and flushes them to the sink.

    Example:
        usage = UsageCollector(sink, connectivity, identity, environment)
        await usage.start()              # tracks the initial page view
        usage.track_button_click("signup", {"plan": "pro"})
        await usage.stop()               # final flush
    """

    def __init__(
        self,
        sink: RemoteSink,
        connectivity: ConnectivityMonitor,
        identity: SessionIdentity,
        environment: Environment,
        config: CollectorConfig | None = None,
        track_initial_page_view: bool = True,
    ):
        super().__init__(sink, connectivity, config or default_usage_config(), get_usage_logger())
        self.identity = identity
        self.environment = environment
        self._track_initial_page_view = track_initial_page_view

    def _on_start(self) -> None:
        if self._track_initial_page_view:
            self.track_page_view()

    # =========================================================================
    # Event Collection
    # =========================================================================

    def track_event(
        self,
        event_type: EventType | str,
        data: dict[str, Any] | None = None,
    ) -> str | None:
        """
        Record a usage event with the current context.

        Args:
            event_type: One of ``EventType``
            data: Event attributes

        Returns:
            Event ID, or None if the event was dropped
        """
        try:
            record = EventRecord(
                event_type=EventType(event_type),
                session_id=self.identity.session_id,
                user_id=self.identity.user_id,
                context=self.environment.capture_context(),
                data=dict(data or {}),
            )
        except Exception:
            self.logger.warning(
                "Dropped %s event: could not build record", event_type, exc_info=True
            )
            return None

        self._enqueue(record)
        log_with_context(
            self.logger,
            logging.DEBUG,
            f"Event tracked: {record.event_type}",
            event_id=record.id,
            event_type=record.event_type.value,
        )
        return record.id

    @never_raises
    def track_page_view(
        self,
        page: str | None = None,
        properties: dict[str, Any] | None = None,
    ) -> str | None:
        context = self.environment.capture_context()
        return self.track_event(
            EventType.PAGE_VIEW,
            {
                "page": page or page_name(context.url),
                "title": self.environment.title,
                **(properties or {}),
            },
        )

    @never_raises
    def track_user_action(
        self,
        action: str,
        properties: dict[str, Any] | None = None,
    ) -> str | None:
        return self.track_event(EventType.USER_ACTION, {"action": action, **(properties or {})})

    @never_raises
    def track_button_click(
        self,
        button_name: str,
        properties: dict[str, Any] | None = None,
    ) -> str | None:
        return self.track_event(
            EventType.BUTTON_CLICK, {"button_name": button_name, **(properties or {})}
        )

    @never_raises
    def track_link_click(
        self,
        link_text: str,
        link_url: str,
        properties: dict[str, Any] | None = None,
    ) -> str | None:
        return self.track_event(
            EventType.LINK_CLICK,
            {"link_text": link_text, "link_url": link_url, **(properties or {})},
        )

    @never_raises
    def track_form_submit(
        self,
        form_name: str,
        form_data: dict[str, Any] | None = None,
        properties: dict[str, Any] | None = None,
    ) -> str | None:
        """Track a form submission. Sensitive fields are redacted before storage."""
        return self.track_event(
            EventType.FORM_SUBMIT,
            {
                "form_name": form_name,
                "form_data": sanitize_payload(form_data or {}),
                **sanitize_payload(properties or {}),
            },
        )

    @never_raises
    def track_search(
        self,
        search_term: str,
        search_type: str = "general",
        properties: dict[str, Any] | None = None,
    ) -> str | None:
        return self.track_event(
            EventType.SEARCH,
            {"search_term": search_term, "search_type": search_type, **(properties or {})},
        )

    @never_raises
    def track_conversion(
        self,
        conversion_type: str,
        conversion_data: dict[str, Any] | None = None,
        properties: dict[str, Any] | None = None,
    ) -> str | None:
        return self.track_event(
            EventType.CONVERSION,
            {
                "conversion_type": conversion_type,
                "conversion_data": conversion_data or {},
                **(properties or {}),
            },
        )

    @never_raises
    def track_feature_usage(
        self,
        feature_name: str,
        usage_data: dict[str, Any] | None = None,
        properties: dict[str, Any] | None = None,
    ) -> str | None:
        return self.track_event(
            EventType.FEATURE_USAGE,
            {"feature_name": feature_name, "usage_data": usage_data or {}, **(properties or {})},
        )

    @never_raises
    def track_performance(
        self,
        metric_name: str,
        value: float,
        properties: dict[str, Any] | None = None,
    ) -> str | None:
        return self.track_event(
            EventType.PERFORMANCE,
            {"metric_name": metric_name, "value": value, **(properties or {})},
        )

    @never_raises
    def track_user_journey(
        self,
        step: str,
        step_data: dict[str, Any] | None = None,
        properties: dict[str, Any] | None = None,
    ) -> str | None:
        return self.track_user_action(
            "user_journey",
            {"journey_step": step, "step_data": step_data or {}, **(properties or {})},
        )

    # =========================================================================
    # Page lifecycle
    # =========================================================================

    @never_raises
    def track_visibility_change(self, hidden: bool) -> str | None:
        return self.track_user_action(
            "page_hidden" if hidden else "page_visible",
            {"timestamp": utc_now().isoformat()},
        )

    async def handle_page_unload(self) -> int:
        """Record the unload and make one best-effort flush."""
        self.track_user_action("page_unload", {"timestamp": utc_now().isoformat()})
        return await self.flush()

    # =========================================================================
    # Dashboard
    # =========================================================================

    async def get_dashboard_data(self) -> dict[str, Any] | None:
        """
        Aggregate the last 7 days of delivered events.

        Returns:
            Totals, top pages/actions and conversion rate, or None if the
            sink could not be read
        """
        try:
            rows = await self.sink.select(self.store, utc_now() - DASHBOARD_WINDOW)
        except Exception:
            self.logger.error("Failed to load usage dashboard data", exc_info=True)
            return None

        return summarize_events(rows)


def summarize_events(rows: list[dict[str, Any]]) -> dict[str, Any]:
    page_views = [r for r in rows if r.get("eventType") == EventType.PAGE_VIEW]
    actions = [r for r in rows if r.get("eventType") == EventType.USER_ACTION]
    conversions = sum(1 for r in rows if r.get("eventType") == EventType.CONVERSION)

    top_pages = Counter((r.get("data") or {}).get("page") or "unknown" for r in page_views)
    top_actions = Counter((r.get("data") or {}).get("action") or "unknown" for r in actions)

    return {
        "total_events": len(rows),
        "unique_sessions": len({r.get("sessionId") for r in rows if r.get("sessionId")}),
        "page_views": len(page_views),
        "conversions": conversions,
        "top_pages": [{"page": p, "count": c} for p, c in top_pages.most_common(TOP_N)],
        "top_actions": [{"action": a, "count": c} for a, c in top_actions.most_common(TOP_N)],
        "conversion_rate": (conversions / len(page_views) * 100) if page_views else 0.0,
    }
