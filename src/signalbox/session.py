"""
Session and identity lookup.

The session id is created lazily on first use and persisted in tab-scoped
storage, so it stays the same for the life of the session. The user id is
read fresh on every record so a login mid-session is picked up without
touching the session id.

Storage is injected; the medium (browser storage, cookie jar, a dict) is the
host's concern.
"""

from __future__ import annotations

import secrets
import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class KeyValueStorage(Protocol):
    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """Dict-backed storage for tests and single-process hosts."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)


def generate_session_id() -> str:
    return f"session_{int(time.time() * 1000)}_{secrets.token_hex(6)}"


class SessionIdentity:
    SESSION_KEY = "signalbox_session_id"
    USER_KEY = "userId"

    def __init__(
        self,
        session_storage: KeyValueStorage | None = None,
        user_storage: KeyValueStorage | None = None,
    ):
        """
        Args:
            session_storage: Tab-scoped storage holding the session id
            user_storage: Storage holding the authenticated user id
                (defaults to the session storage)
        """
        self._session_storage = session_storage or MemoryStorage()
        self._user_storage = user_storage or self._session_storage

    @property
    def session_id(self) -> str:
        session_id = self._session_storage.get_item(self.SESSION_KEY)
        if not session_id:
            session_id = generate_session_id()
            self._session_storage.set_item(self.SESSION_KEY, session_id)
        return session_id

    @property
    def user_id(self) -> str | None:
        return self._user_storage.get_item(self.USER_KEY) or None

    def set_user_id(self, user_id: str | None) -> None:
        """Record a login (or logout with None). The session id is unaffected."""
        if user_id:
            self._user_storage.set_item(self.USER_KEY, user_id)
        else:
            self._user_storage.remove_item(self.USER_KEY)
