"""Tests for the error collector."""

from __future__ import annotations

import httpx
import pytest

from signalbox.collectors.errors import ErrorCollector, severity_for_status
from signalbox.faults import FaultHooks
from signalbox.observation import Observation
from signalbox.records import ErrorCategory, ErrorRecord, ErrorSeverity

STORE = "error_logs"


def _last(errors: ErrorCollector) -> ErrorRecord:
    return errors.queued()[-1]


class TestTrackError:
    def test_defaults_and_enrichment(self, errors) -> None:
        error_id = errors.track_error("Cannot read properties of undefined")

        record = _last(errors)
        assert record.id == error_id
        assert record.severity == ErrorSeverity.MEDIUM
        assert record.category == ErrorCategory.SCRIPT_FAULT
        assert record.is_online is True
        assert record.context.url == "https://crm.example.com/"
        assert record.performance is not None
        assert record.performance.load_time == 1200
        assert record.performance.memory is not None
        assert record.performance.memory.used_heap == 10_000_000

    def test_offline_flag(self, errors, connectivity) -> None:
        connectivity.set_online(False)
        errors.track_error("fetch failed")
        assert _last(errors).is_online is False

    def test_invalid_severity_is_dropped_without_raising(self, errors) -> None:
        assert errors.track_error("boom", severity="catastrophic") is None
        assert errors.queue_size == 0

    def test_exception_capture(self, errors) -> None:
        try:
            raise ValueError("bad payload")
        except ValueError as e:
            errors.track_exception(e)

        record = _last(errors)
        assert record.message == "bad payload"
        assert record.severity == ErrorSeverity.HIGH
        assert record.filename == __file__
        assert record.lineno is not None
        assert "ValueError" in (record.stack or "")
        assert record.additional_data["exception_type"] == "ValueError"


class TestCategorisedErrors:
    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (503, ErrorSeverity.HIGH),
            (500, ErrorSeverity.HIGH),
            (404, ErrorSeverity.MEDIUM),
            (400, ErrorSeverity.MEDIUM),
            (302, ErrorSeverity.LOW),
            (None, ErrorSeverity.LOW),
        ],
    )
    def test_severity_for_status(self, status, expected) -> None:
        assert severity_for_status(status) == expected

    def test_api_error(self, errors) -> None:
        errors.track_api_error(502, "/api/contacts", method="POST", request_data={"name": "Ann"})

        record = _last(errors)
        assert record.category == ErrorCategory.API
        assert record.severity == ErrorSeverity.HIGH
        assert record.message == "API Error"
        assert record.additional_data["status"] == 502
        assert record.additional_data["method"] == "POST"
        assert record.additional_data["request_data"] == {"name": "Ann"}

    def test_http_response(self, errors) -> None:
        request = httpx.Request("DELETE", "https://crm.example.com/api/contacts/7")
        response = httpx.Response(404, request=request, content=b"not found")

        errors.track_http_response(response)

        record = _last(errors)
        assert record.severity == ErrorSeverity.MEDIUM
        assert record.message == "DELETE /api/contacts/7 returned 404"
        assert record.additional_data["status_text"] == "Not Found"
        assert record.additional_data["response_data"] == "not found"

    def test_network_error(self, errors) -> None:
        errors.track_network_error("/api/contacts", timeout=5.0, retry_count=2)

        record = _last(errors)
        assert record.category == ErrorCategory.NETWORK
        assert record.severity == ErrorSeverity.MEDIUM
        assert record.additional_data["retry_count"] == 2

    def test_performance_error_defaults_low(self, errors) -> None:
        errors.track_performance_error("long_task", 450)

        record = _last(errors)
        assert record.category == ErrorCategory.PERFORMANCE
        assert record.severity == ErrorSeverity.LOW
        assert record.additional_data["url"] == "https://crm.example.com/"

    def test_user_interaction_error(self, errors) -> None:
        errors.track_user_interaction_error("submit", element="#save", page="contacts")

        record = _last(errors)
        assert record.category == ErrorCategory.USER_INTERACTION
        assert record.severity == ErrorSeverity.LOW
        assert record.additional_data["element"] == "#save"

    def test_failing_environment_is_dropped(self, errors, environment, monkeypatch) -> None:
        def capture_context():
            raise RuntimeError("env down")

        monkeypatch.setattr(environment, "capture_context", capture_context)

        assert errors.track_performance_error("LCP", 4100) is None
        assert errors.track_user_interaction_error("submit") is None
        assert errors.track_error("boom") is None
        assert errors.queue_size == 0

    def test_malformed_response_is_dropped(self, errors) -> None:
        assert errors.track_http_response(object()) is None
        assert errors.queue_size == 0


class TestDelivery:
    @pytest.mark.asyncio
    async def test_critical_error_flushes_immediately(self, errors, sink) -> None:
        await errors.start()
        errors.track_error("Database connection lost", severity="critical")
        await errors.wait_idle()

        rows = sink.rows(STORE)
        assert len(rows) == 1
        assert rows[0]["severity"] == "critical"
        await errors.stop()

    @pytest.mark.asyncio
    async def test_other_errors_wait_for_the_interval(self, errors, sink) -> None:
        await errors.start()
        errors.track_error("minor", severity="high")
        await errors.wait_idle()

        assert sink.rows(STORE) == []
        assert errors.queue_size == 1
        await errors.stop()
        assert len(sink.rows(STORE)) == 1


class TestFaultSource:
    @pytest.mark.asyncio
    async def test_component_errors_are_captured(
        self, sink, connectivity, identity, environment, error_config
    ) -> None:
        hooks = FaultHooks()
        collector = ErrorCollector(
            sink, connectivity, identity, environment, error_config, fault_source=hooks.source
        )
        await collector.start()

        hooks.report_component_error(
            RuntimeError("render failed"),
            "ContactList",
            component_stack="in ContactList\n in App",
            error_boundary="AppBoundary",
        )

        record = _last(collector)
        assert record.message == "render failed"
        assert record.severity == ErrorSeverity.HIGH
        assert record.component_stack == "in ContactList\n in App"
        assert record.additional_data["component_name"] == "ContactList"

        await collector.stop()
        assert hooks.source.subscription_count == 0

    @pytest.mark.asyncio
    async def test_unhandled_rejection(
        self, sink, connectivity, identity, environment, error_config
    ) -> None:
        hooks = FaultHooks()
        collector = ErrorCollector(
            sink, connectivity, identity, environment, error_config, fault_source=hooks.source
        )
        await collector.start()

        hooks.source.emit(
            Observation(
                entry_type="unhandledrejection",
                name="Task exception was never retrieved",
                attributes={"reason": "Task exception was never retrieved"},
            )
        )

        record = _last(collector)
        assert record.category == ErrorCategory.SCRIPT_FAULT
        assert record.additional_data["reason"] == "Task exception was never retrieved"
        await collector.stop()


class TestStatistics:
    @pytest.mark.asyncio
    async def test_counts_by_severity_and_category(self, errors, sink) -> None:
        await sink.insert(
            STORE,
            [
                ErrorRecord(message="a", severity="high", category="api", session_id="s"),
                ErrorRecord(message="b", severity="high", category="api", session_id="s"),
                ErrorRecord(message="c", severity="low", category="network", session_id="s"),
            ],
        )

        stats = await errors.get_error_statistics()

        assert stats == {
            "total": 3,
            "by_severity": {"high": 2, "low": 1},
            "by_category": {"api": 2, "network": 1},
            "last_24_hours": 3,
        }

    @pytest.mark.asyncio
    async def test_returns_none_when_sink_fails(self, errors, sink) -> None:
        sink.failing = True
        assert await errors.get_error_statistics() is None
