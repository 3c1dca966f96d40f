"""
Priority request queue with bounded concurrency.

Protects rate-limited upstream APIs: at most `concurrency` operations run at
once, and whenever a slot frees the highest-priority pending request starts
(FIFO within a priority). A sustained stream of HIGH requests can starve LOW
ones; that trade-off is accepted.

Dispatch happens on the next event-loop turn after enqueue, so requests
enqueued together compete by priority rather than by arrival.

All state is mutated on the event loop thread only.
"""

import asyncio
import heapq
import itertools
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Generic, TypeVar

from cardvault.models.failure import QueueClearedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Priority(IntEnum):
    """Higher value runs first."""

    LOW = 1
    NORMAL = 2
    HIGH = 3


@dataclass(slots=True)
class QueuedRequest(Generic[T]):
    """A call waiting for, or holding, a concurrency slot."""

    id: str
    priority: Priority
    execute: Callable[[], Awaitable[T]]
    created_at: float
    future: "asyncio.Future[T]" = field(repr=False)


class RequestQueue:
    """
    Runs enqueued coroutine factories under a concurrency bound.

    Args:
        concurrency: Maximum simultaneous operations (default 3)
        name: Label used in logs
    """

    def __init__(self, concurrency: int = 3, name: str = "upstream") -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.concurrency = concurrency
        self.name = name
        # Heap of (-priority, sequence, request); sequence keeps FIFO within a band
        self._pending: list[tuple[int, int, QueuedRequest[Any]]] = []
        self._running: set[str] = set()
        self._tasks: set[asyncio.Task[None]] = set()
        self._sequence = itertools.count(1)
        self._dispatch_scheduled = False

    @property
    def pending_count(self) -> int:
        return sum(1 for _, _, r in self._pending if not r.future.done())

    @property
    def running_count(self) -> int:
        return len(self._running)

    async def enqueue(
        self,
        execute: Callable[[], Awaitable[T]],
        priority: Priority = Priority.NORMAL,
    ) -> T:
        """
        Queue `execute` and wait for its outcome.

        Whatever `execute` returns or raises is delivered unchanged.

        Raises:
            QueueClearedError: If clear() ran before the request started
        """
        loop = asyncio.get_running_loop()
        sequence = next(self._sequence)
        request: QueuedRequest[T] = QueuedRequest(
            id=f"{self.name}-{sequence}",
            priority=priority,
            execute=execute,
            created_at=time.monotonic(),
            future=loop.create_future(),
        )
        heapq.heappush(self._pending, (-int(priority), sequence, request))
        self._schedule_dispatch(loop)
        return await request.future

    def clear(self) -> int:
        """
        Reject every pending request with QueueClearedError.

        In-flight requests are unaffected. Returns the number rejected.
        """
        rejected = 0
        pending, self._pending = self._pending, []
        for _, _, request in pending:
            if not request.future.done():
                request.future.set_exception(QueueClearedError(request.id))
                rejected += 1
        if rejected:
            logger.info("Cleared %d pending requests from %s queue", rejected, self.name)
        return rejected

    def stats(self) -> dict[str, int]:
        return {
            "concurrency": self.concurrency,
            "pending": self.pending_count,
            "running": self.running_count,
        }

    def _schedule_dispatch(self, loop: asyncio.AbstractEventLoop) -> None:
        if not self._dispatch_scheduled:
            self._dispatch_scheduled = True
            loop.call_soon(self._dispatch)

    def _dispatch(self) -> None:
        """Fill free slots from the heap."""
        self._dispatch_scheduled = False
        while self._pending and len(self._running) < self.concurrency:
            _, _, request = heapq.heappop(self._pending)
            if request.future.done():
                # Caller stopped waiting before the request started
                continue
            self._running.add(request.id)
            task = asyncio.ensure_future(self._run(request))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run(self, request: QueuedRequest[Any]) -> None:
        try:
            result = await request.execute()
        except asyncio.CancelledError:
            if not request.future.done():
                request.future.cancel()
            raise
        except Exception as e:
            if not request.future.done():
                request.future.set_exception(e)
        else:
            if not request.future.done():
                request.future.set_result(result)
        finally:
            self._running.discard(request.id)
            self._schedule_dispatch(asyncio.get_running_loop())
