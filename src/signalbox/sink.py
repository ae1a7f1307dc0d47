"""
Remote sink clients.

The sink is an append-only store addressed by name. Collectors only ever
``insert`` batches; dashboards read back with ``select``. A failed insert
raises ``SinkError`` and the collector requeues the batch.

Implementations:
- HttpSink: PostgREST-style REST endpoint (``POST /rest/v1/<store>``) via httpx
- MemorySink: in-process store for tests and local development
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

import httpx

from signalbox.errors import SinkError
from signalbox.logging import get_delivery_logger
from signalbox.records import RecordBase

logger = get_delivery_logger()


@runtime_checkable
class RemoteSink(Protocol):
    """Append-only named stores."""

    async def insert(self, store: str, records: Sequence[RecordBase]) -> None: ...

    async def select(self, store: str, since: datetime) -> list[dict[str, Any]]: ...


# =============================================================================
# HTTP sink
# =============================================================================


class HttpSink:
    """
    Sink backed by a PostgREST-compatible HTTP API.

    Example:
        sink = HttpSink("https://project.example.co", api_key="...")
        await sink.insert("analytics_events", records)
        await sink.aclose()
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        """
        Args:
            base_url: Service root; stores live under ``/rest/v1/<store>``
            api_key: Sent as ``apikey`` and bearer token when set
            client: Pre-configured client (tests inject a MockTransport here)
            timeout: Transport-level timeout in seconds
        """
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._base_url = base_url.rstrip("/")
        self._headers = headers

    def _store_url(self, store: str) -> str:
        return f"{self._base_url}/rest/v1/{store}"

    async def insert(self, store: str, records: Sequence[RecordBase]) -> None:
        payload = [record.to_row() for record in records]
        try:
            response = await self._client.post(
                self._store_url(store),
                json=payload,
                headers={**self._headers, "Prefer": "return=minimal"},
            )
        except httpx.HTTPError as e:
            raise SinkError(store, f"{type(e).__name__}: {e}") from e

        if response.is_error:
            raise SinkError(store, response.text[:200] or "rejected", response.status_code)
        logger.debug("Inserted %d records into %s", len(payload), store)

    async def select(self, store: str, since: datetime) -> list[dict[str, Any]]:
        try:
            response = await self._client.get(
                self._store_url(store),
                params={"select": "*", "timestamp": f"gte.{since.isoformat()}"},
                headers=self._headers,
            )
        except httpx.HTTPError as e:
            raise SinkError(store, f"{type(e).__name__}: {e}") from e

        if response.is_error:
            raise SinkError(store, response.text[:200] or "rejected", response.status_code)

        rows: list[dict[str, Any]] = response.json()
        return rows

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


# =============================================================================
# In-memory sink
# =============================================================================


class MemorySink:
    """
    In-process sink for tests and local development.

    Failure can be injected to exercise the requeue path:

        sink = MemorySink()
        sink.fail_next(2)        # next two inserts raise SinkError
        sink.failing = True      # every insert fails until reset
        sink.delay = 5.0         # inserts hang for 5s (timeout tests)
    """

    def __init__(self) -> None:
        self.stores: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.insert_calls: list[tuple[str, int]] = []
        self.failing = False
        self.delay = 0.0
        self._fail_budget = 0

    def fail_next(self, count: int = 1) -> None:
        self._fail_budget += count

    async def insert(self, store: str, records: Sequence[RecordBase]) -> None:
        self.insert_calls.append((store, len(records)))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.failing or self._fail_budget > 0:
            if self._fail_budget > 0:
                self._fail_budget -= 1
            raise SinkError(store, "injected failure", 503)
        self.stores[store].extend(record.to_row() for record in records)

    async def select(self, store: str, since: datetime) -> list[dict[str, Any]]:
        if self.failing:
            raise SinkError(store, "injected failure", 503)
        return [
            row
            for row in self.stores.get(store, [])
            if datetime.fromisoformat(row["timestamp"]) >= since
        ]

    def rows(self, store: str) -> list[dict[str, Any]]:
        """Everything delivered to ``store`` so far, in delivery order."""
        return list(self.stores.get(store, []))
