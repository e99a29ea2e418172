"""Bounded, order-preserving channel carrying accepted events to the host."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import suppress
from dataclasses import dataclass
import logging

from reviewgate.models.schemas import InboundEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[InboundEvent], Awaitable[None]]


@dataclass(slots=True)
class QueueStats:
    """Runtime queue status values."""

    backend: str
    running: bool
    pending_events: int
    processed_events: int


class EventQueue:
    """In-memory bounded queue drained by a single worker.

    One worker keeps events in arrival order; ``publish`` waits while the
    queue is full.
    """

    def __init__(self, maxsize: int = 100, handler: EventHandler | None = None) -> None:
        self._queue: asyncio.Queue[InboundEvent] = asyncio.Queue(maxsize=max(1, maxsize))
        self._handler = handler
        self._worker_task: asyncio.Task[None] | None = None
        self._processed = 0

    def register_handler(self, handler: EventHandler) -> None:
        """Register the consumer of published events."""
        self._handler = handler

    @property
    def is_running(self) -> bool:
        return self._worker_task is not None

    async def start(self) -> None:
        """Start the worker task."""
        if self._worker_task is not None:
            return
        self._worker_task = asyncio.create_task(self._worker_loop(), name="reviewgate-event-worker")

    async def stop(self) -> None:
        """Stop the worker; events still queued stay queued."""
        task, self._worker_task = self._worker_task, None
        if task is None:
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    async def publish(self, event: InboundEvent) -> None:
        """Enqueue an event, waiting for room when the queue is full."""
        await self._queue.put(event)

    async def join(self) -> None:
        """Wait until every published event has been handled."""
        await self._queue.join()

    def stats(self) -> QueueStats:
        """Return current queue runtime stats."""
        return QueueStats(
            backend="in_memory",
            running=self.is_running,
            pending_events=self._queue.qsize(),
            processed_events=self._processed,
        )

    async def _worker_loop(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                if self._handler is None:
                    logger.error("No handler registered; dropping PR #%s", event.subject_id)
                    continue
                await self._handler(event)
            except Exception:
                logger.exception(
                    "Event worker failed processing PR #%s repository=%s",
                    event.subject_id,
                    event.repository.full_name,
                )
            finally:
                self._processed += 1
                self._queue.task_done()
