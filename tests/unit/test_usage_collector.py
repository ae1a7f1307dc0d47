"""Tests for the usage-event collector."""

from __future__ import annotations

import pytest

from signalbox.collectors.usage import UsageCollector, summarize_events
from signalbox.config import CollectorConfig
from signalbox.records import EventRecord, EventType
from signalbox.sanitizer import REDACTED

STORE = "analytics_events"


def _last(usage: UsageCollector) -> EventRecord:
    return usage.queued()[-1]


class TestTracking:
    def test_page_view_uses_context(self, usage) -> None:
        event_id = usage.track_page_view()

        record = _last(usage)
        assert record.id == event_id
        assert record.event_type == EventType.PAGE_VIEW
        assert record.data == {"page": "homepage", "title": "Home"}
        assert record.context.url == "https://crm.example.com/"

    def test_page_view_with_explicit_page(self, usage) -> None:
        usage.track_page_view("pricing", {"plan_count": 3})
        assert _last(usage).data == {"page": "pricing", "title": "Home", "plan_count": 3}

    def test_button_and_link_clicks(self, usage) -> None:
        usage.track_button_click("join_waitlist", {"position": "hero"})
        assert _last(usage).event_type == EventType.BUTTON_CLICK
        assert _last(usage).data == {"button_name": "join_waitlist", "position": "hero"}

        usage.track_link_click("Docs", "/docs")
        assert _last(usage).data == {"link_text": "Docs", "link_url": "/docs"}

    def test_form_submit_redacts_sensitive_fields(self, usage) -> None:
        usage.track_form_submit(
            "signup",
            {"email": "ann@example.com", "password": "hunter2"},
            {"card_number": "4111111111111111", "source": "landing"},
        )
        data = _last(usage).data

        assert data["form_name"] == "signup"
        assert data["form_data"] == {"email": "ann@example.com", "password": REDACTED}
        assert data["card_number"] == REDACTED
        assert data["source"] == "landing"

    def test_search_conversion_feature(self, usage) -> None:
        usage.track_search("acme")
        assert _last(usage).data == {"search_term": "acme", "search_type": "general"}

        usage.track_conversion("waitlist_signup", {"plan": "pro"})
        assert _last(usage).event_type == EventType.CONVERSION
        assert _last(usage).data["conversion_data"] == {"plan": "pro"}

        usage.track_feature_usage("bulk_import", {"rows": 120})
        assert _last(usage).data == {"feature_name": "bulk_import", "usage_data": {"rows": 120}}

    def test_user_journey_is_a_user_action(self, usage) -> None:
        usage.track_user_journey("checkout", {"step": 2})
        record = _last(usage)
        assert record.event_type == EventType.USER_ACTION
        assert record.data["action"] == "user_journey"
        assert record.data["journey_step"] == "checkout"

    def test_performance_event(self, usage) -> None:
        usage.track_performance("LCP", 2100, {"element": "img"})
        assert _last(usage).data == {"metric_name": "LCP", "value": 2100, "element": "img"}

    def test_identity_is_attached(self, usage, identity) -> None:
        usage.track_user_action("before_login")
        identity.set_user_id("user-42")
        usage.track_user_action("after_login")

        before, after = usage.queued()
        assert before.user_id is None
        assert after.user_id == "user-42"
        assert before.session_id == after.session_id == identity.session_id

    def test_invalid_event_is_dropped_without_raising(self, usage) -> None:
        assert usage.track_event("not_a_type", {"x": 1}) is None
        assert usage.queue_size == 0


class TestNeverRaises:
    def test_form_submit_with_non_string_keys(self, usage) -> None:
        event_id = usage.track_form_submit("contact", {1: "x", "password": "p"})

        assert event_id is not None
        assert _last(usage).data["form_data"] == {1: "x", "password": REDACTED}

    def test_unsanitisable_form_data_is_dropped(self, usage) -> None:
        assert usage.track_form_submit("contact", ["not", "a", "mapping"]) is None
        assert usage.queue_size == 0

    def test_failing_environment_is_dropped(self, usage, environment, monkeypatch) -> None:
        def capture_context():
            raise RuntimeError("env down")

        monkeypatch.setattr(environment, "capture_context", capture_context)

        assert usage.track_page_view() is None
        assert usage.track_button_click("signup") is None
        assert usage.queue_size == 0


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_initial_page_view_on_start(
        self, sink, connectivity, identity, environment, usage_config
    ) -> None:
        collector = UsageCollector(sink, connectivity, identity, environment, usage_config)
        await collector.start()

        assert [r.event_type for r in collector.queued()] == [EventType.PAGE_VIEW]
        await collector.stop()
        assert len(sink.rows(STORE)) == 1

    def test_visibility_change(self, usage) -> None:
        usage.track_visibility_change(hidden=True)
        usage.track_visibility_change(hidden=False)
        assert [r.data["action"] for r in usage.queued()] == ["page_hidden", "page_visible"]

    @pytest.mark.asyncio
    async def test_page_unload_flushes(self, usage, sink) -> None:
        usage.track_page_view()

        delivered = await usage.handle_page_unload()

        assert delivered == 2
        assert sink.rows(STORE)[-1]["data"]["action"] == "page_unload"


class TestDashboard:
    @pytest.mark.asyncio
    async def test_dashboard_aggregates_delivered_events(self, usage, sink) -> None:
        records = [
            EventRecord(event_type=EventType.PAGE_VIEW, session_id="s1", data={"page": "homepage"}),
            EventRecord(event_type=EventType.PAGE_VIEW, session_id="s2", data={"page": "pricing"}),
            EventRecord(event_type=EventType.USER_ACTION, session_id="s1", data={"action": "cta"}),
            EventRecord(event_type=EventType.USER_ACTION, session_id="s2", data={"action": "cta"}),
            EventRecord(
                event_type=EventType.CONVERSION,
                session_id="s2",
                data={"conversion_type": "waitlist_signup"},
            ),
        ]
        await sink.insert(STORE, records)

        data = await usage.get_dashboard_data()

        assert data is not None
        assert data["total_events"] == 5
        assert data["unique_sessions"] == 2
        assert data["page_views"] == 2
        assert data["conversions"] == 1
        assert data["conversion_rate"] == 50.0
        assert data["top_actions"] == [{"action": "cta", "count": 2}]
        assert {p["page"] for p in data["top_pages"]} == {"homepage", "pricing"}

    @pytest.mark.asyncio
    async def test_dashboard_returns_none_when_sink_fails(self, usage, sink) -> None:
        sink.failing = True
        assert await usage.get_dashboard_data() is None

    def test_summary_without_page_views(self) -> None:
        assert summarize_events([])["conversion_rate"] == 0.0


class TestConfiguration:
    def test_default_config(self, sink, connectivity, identity, environment) -> None:
        collector = UsageCollector(sink, connectivity, identity, environment)
        assert collector.store == STORE
        assert collector.config.capacity == 50
        assert collector.config.flush_interval == 10.0

    def test_custom_store(self, sink, connectivity, identity, environment) -> None:
        collector = UsageCollector(
            sink, connectivity, identity, environment, CollectorConfig(store="events_staging")
        )
        assert collector.store == "events_staging"
