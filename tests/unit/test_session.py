"""Tests for session identity and environment snapshots."""

from __future__ import annotations

from signalbox.environment import StaticEnvironment, page_name
from signalbox.records import MemorySnapshot, RecordContext
from signalbox.session import MemoryStorage, SessionIdentity


class TestSessionIdentity:
    def test_session_id_is_created_once(self) -> None:
        storage = MemoryStorage()
        identity = SessionIdentity(storage)

        first = identity.session_id
        assert first.startswith("session_")
        assert identity.session_id == first
        assert storage.get_item(SessionIdentity.SESSION_KEY) == first

    def test_existing_session_id_is_reused(self) -> None:
        storage = MemoryStorage({SessionIdentity.SESSION_KEY: "session_existing"})
        assert SessionIdentity(storage).session_id == "session_existing"

    def test_login_mid_session_keeps_session_id(self) -> None:
        identity = SessionIdentity()
        session_id = identity.session_id
        assert identity.user_id is None

        identity.set_user_id("user-42")

        assert identity.user_id == "user-42"
        assert identity.session_id == session_id

    def test_logout_clears_user(self) -> None:
        identity = SessionIdentity()
        identity.set_user_id("user-42")
        identity.set_user_id(None)
        assert identity.user_id is None

    def test_separate_user_storage(self) -> None:
        session_storage = MemoryStorage()
        user_storage = MemoryStorage({SessionIdentity.USER_KEY: "user-7"})
        identity = SessionIdentity(session_storage, user_storage)

        assert identity.user_id == "user-7"
        assert session_storage.get_item(SessionIdentity.USER_KEY) is None


class TestStaticEnvironment:
    def test_navigate_keeps_previous_url_as_referrer(self) -> None:
        env = StaticEnvironment(RecordContext(url="https://crm.example.com/"), title="Home")
        env.navigate("https://crm.example.com/pricing", title="Pricing")

        context = env.capture_context()
        assert context.url == "https://crm.example.com/pricing"
        assert context.referrer == "https://crm.example.com/"
        assert env.title == "Pricing"
        assert env.path == "/pricing"

    def test_performance_snapshot_includes_memory(self) -> None:
        env = StaticEnvironment(
            memory_provider=lambda: MemorySnapshot(used_heap=1, total_heap=2, heap_limit=4)
        )
        snapshot = env.performance_snapshot()
        assert snapshot.memory is not None
        assert snapshot.memory.heap_limit == 4

    def test_no_memory_provider(self) -> None:
        env = StaticEnvironment()
        assert env.memory_snapshot() is None
        assert env.performance_snapshot().memory is None

    def test_from_process_describes_python(self) -> None:
        env = StaticEnvironment.from_process(url="https://crm.example.com/", title="CRM")
        context = env.capture_context()
        assert context.user_agent.startswith("signalbox/")
        assert "Python/" in context.user_agent
        assert env.title == "CRM"


class TestPageName:
    def test_root_is_homepage(self) -> None:
        assert page_name("https://crm.example.com/") == "homepage"
        assert page_name("https://crm.example.com") == "homepage"

    def test_path_is_used_otherwise(self) -> None:
        assert page_name("https://crm.example.com/pricing/") == "pricing"
        assert page_name("/contacts/new") == "contacts/new"
