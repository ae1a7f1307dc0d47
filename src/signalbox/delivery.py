"""
Buffered delivery shared by the usage and error collectors.

Each collector owns a bounded buffer and a periodic flush task:

1. Instrumentation appends records synchronously (never blocks, never raises).
2. A flush swaps the whole buffer out into a batch, so records arriving while
   the batch is on the network land in a fresh buffer.
3. The batch is inserted into the collector's sink store. On success it is
   discarded; on failure (error or timeout) it is put back at the front of
   the buffer and the next tick retries it.

A flush is also started immediately when the buffer reaches capacity, when a
subclass marks a record as urgent, and when connectivity comes back. While
offline nothing is swapped out. Only one batch per collector is on the
network at a time. If the buffer fills again meanwhile, it is swapped out
into a staged batch that is delivered right after the current one, so a
full buffer never evicts while the sink is healthy. Any other trigger that
arrives meanwhile re-flushes as soon as the delivery succeeds. A failed
delivery puts its batch and every staged batch back at the front, oldest
first; only then can the capacity bound evict.

Delivery is at-least-once: a batch whose acknowledgement is lost is sent
again.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections import deque
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from signalbox.buffer import BoundedBuffer
from signalbox.config import CollectorConfig
from signalbox.connectivity import ConnectivityMonitor
from signalbox.errors import DeliveryTimeout
from signalbox.logging import get_delivery_logger, log_with_context
from signalbox.records import RecordBase
from signalbox.sink import RemoteSink

R = TypeVar("R", bound=RecordBase)

F = TypeVar("F", bound=Callable[..., Any])


def never_raises(method: F) -> F:
    """
    Guard a public ``track_*`` method so instrumentation cannot break the caller.

    Any exception while building the record (payload sanitising, context
    capture, response inspection) is logged on the collector's logger and
    the call returns None.
    """

    @functools.wraps(method)
    def wrapper(self: BufferedCollector[Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return method(self, *args, **kwargs)
        except Exception:
            self.logger.warning("%s failed; record dropped", method.__name__, exc_info=True)
            return None

    return wrapper  # type: ignore[return-value]


class BufferedCollector(Generic[R]):
    """Bounded buffer + flush scheduler + requeue-on-failure delivery."""

    def __init__(
        self,
        sink: RemoteSink,
        connectivity: ConnectivityMonitor,
        config: CollectorConfig,
        logger: logging.Logger | None = None,
    ):
        self.sink = sink
        self.connectivity = connectivity
        self.config = config
        self.logger = logger or get_delivery_logger()

        self._buffer: BoundedBuffer[R] = BoundedBuffer(config.capacity)
        # Full buffers swapped out while a delivery is in flight, oldest first
        self._staged: deque[list[R]] = deque()
        self._running = False
        self._flush_task: asyncio.Task[None] | None = None
        self._deliveries: set[asyncio.Task[int]] = set()
        self._in_flight = False
        self._flush_pending = False
        self._remove_listener: Callable[[], None] | None = None

        self.consecutive_failures = 0
        self.flushed_count = 0
        self.failed_attempts = 0

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def store(self) -> str:
        return self.config.store

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the periodic flush task and listen for reconnects."""
        if self._running:
            return

        self._running = True
        self._remove_listener = self.connectivity.add_listener(self._on_connectivity_change)
        self._flush_task = asyncio.create_task(self._flush_loop())
        self._on_start()

    async def stop(self) -> None:
        """Stop the flush task and make one final best-effort flush."""
        if not self._running:
            return

        self._running = False
        self._on_stop()

        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None

        if self._flush_task:
            self._flush_task.cancel()
            try:
                await self._flush_task
            except asyncio.CancelledError:
                pass
            self._flush_task = None

        await self.wait_idle()
        await self.flush()

    def _on_start(self) -> None:
        """Hook for subclasses; runs after the flush task is scheduled."""

    def _on_stop(self) -> None:
        """Hook for subclasses; runs before the final flush."""

    # =========================================================================
    # Buffer
    # =========================================================================

    @property
    def queue_size(self) -> int:
        return sum(len(batch) for batch in self._staged) + len(self._buffer)

    @property
    def dropped_count(self) -> int:
        return self._buffer.dropped_count

    def queued(self) -> list[R]:
        """Snapshot of records awaiting delivery (staged, then buffered), oldest first."""
        return [record for batch in self._staged for record in batch] + list(self._buffer)

    def clear_queue(self) -> None:
        self._staged.clear()
        self._buffer.clear()

    def _enqueue(self, record: R) -> None:
        full = self._buffer.append(record)
        if full or self._is_urgent(record):
            self._trigger_flush()

    def _is_urgent(self, record: R) -> bool:
        return False

    # =========================================================================
    # Flushing
    # =========================================================================

    def _take_batch(self) -> list[R] | None:
        if not self._buffer or not self.connectivity.is_online:
            return None
        if self._in_flight:
            if self._buffer.is_full:
                self._staged.append(self._buffer.swap_out())
            else:
                self._flush_pending = True
            return None
        self._in_flight = True
        return self._buffer.swap_out()

    def _trigger_flush(self) -> None:
        """Start a flush from synchronous code; delivery runs as a task."""
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet; the periodic flush picks the records up once started
            return

        batch = self._take_batch()
        if batch is not None:
            self._spawn_delivery(batch)

    def _spawn_delivery(self, batch: list[R]) -> None:
        task = asyncio.get_running_loop().create_task(self._deliver(batch))
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)

    def _unstage(self) -> list[R]:
        records = [record for batch in self._staged for record in batch]
        self._staged.clear()
        return records

    async def flush(self) -> int:
        """
        Deliver everything currently buffered.

        Returns:
            Number of records delivered (0 when offline, empty, already in
            flight, or the delivery failed and was requeued).
        """
        batch = self._take_batch()
        if batch is None:
            return 0
        return await self._deliver(batch)

    async def wait_idle(self) -> None:
        """Wait for deliveries started by capacity/urgent/reconnect triggers."""
        while self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)

    async def _deliver(self, batch: list[R]) -> int:
        try:
            await asyncio.wait_for(
                self.sink.insert(self.store, batch),
                timeout=self.config.delivery_timeout,
            )
        except asyncio.CancelledError:
            self._buffer.requeue_front(batch + self._unstage())
            self._in_flight = False
            raise
        except TimeoutError:
            self._requeue_failed(batch, DeliveryTimeout(self.store, self.config.delivery_timeout))
            return 0
        except Exception as e:
            self._requeue_failed(batch, e)
            return 0

        self.flushed_count += len(batch)
        self.consecutive_failures = 0
        log_with_context(
            self.logger,
            logging.INFO,
            f"Flushed {len(batch)} records to {self.store}",
            store=self.store,
            count=len(batch),
        )

        if self._staged and self.connectivity.is_online:
            # Stay in flight and hand over to the next staged batch
            self._spawn_delivery(self._staged.popleft())
            return len(batch)

        if self._staged:
            self._buffer.requeue_front(self._unstage())
        self._in_flight = False
        if self._flush_pending:
            self._flush_pending = False
            self._trigger_flush()
        return len(batch)

    def _requeue_failed(self, batch: list[R], error: Exception) -> None:
        evicted = self._buffer.requeue_front(batch + self._unstage())
        self._in_flight = False
        self._flush_pending = False
        self.failed_attempts += 1
        self.consecutive_failures += 1
        log_with_context(
            self.logger,
            logging.WARNING,
            f"Failed to flush {len(batch)} records to {self.store}: {error}",
            store=self.store,
            count=len(batch),
            evicted=evicted,
            consecutive_failures=self.consecutive_failures,
            exc_info=True,
        )

    def next_flush_delay(self) -> float:
        """Seconds until the next periodic attempt, including backoff."""
        interval = self.config.flush_interval
        if self.config.backoff_factor <= 1.0 or not self.consecutive_failures:
            return interval
        delay = interval * self.config.backoff_factor**self.consecutive_failures
        return min(delay, self.config.max_backoff_seconds)

    async def _flush_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.next_flush_delay())
            try:
                await self.flush()
            except Exception:
                self.logger.warning("Periodic flush of %s failed", self.store, exc_info=True)

    def _on_connectivity_change(self, online: bool) -> None:
        if online:
            self._trigger_flush()
