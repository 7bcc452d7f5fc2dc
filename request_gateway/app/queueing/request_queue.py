"""
Strict FIFO queue for deferred operations that need cross-request ordering.
"""

import asyncio
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Optional, Tuple

from shared.logging import get_logger
from shared.metrics import MetricsCollector


Operation = Callable[[], Awaitable[Any]]


def _mark_retrieved(future: asyncio.Future) -> None:
    # Enqueuers may ignore the handle; reading the exception keeps asyncio quiet.
    if not future.cancelled():
        future.exception()


class RequestQueue:
    """Runs enqueued operations one at a time, in submission order.

    The worker task starts on the first enqueue against an idle queue and
    exits once the queue drains. A failing operation is logged and recorded
    on its future; it never stops the worker.
    """

    def __init__(self, metrics: Optional[MetricsCollector] = None):
        self._pending: Deque[Tuple[Operation, asyncio.Future]] = deque()
        self._worker: Optional[asyncio.Task] = None
        self._idle = asyncio.Event()
        self._idle.set()
        self._processing = False
        self.metrics = metrics
        self.logger = get_logger("gateway.queue")

    def enqueue(self, operation: Operation) -> asyncio.Future:
        """Schedule operation and return a future for its result. Never blocks."""
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        future.add_done_callback(_mark_retrieved)

        self._pending.append((operation, future))
        self._idle.clear()
        self.logger.debug("Task enqueued", queue_size=len(self._pending))

        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._process())

        return future

    async def _process(self) -> None:
        while self._pending:
            operation, future = self._pending.popleft()
            if future.cancelled():
                continue

            self._processing = True
            try:
                result = await operation()
            except asyncio.CancelledError:
                future.cancel()
                raise
            except Exception as exc:
                self.logger.error(
                    "Queued task failed",
                    error=str(exc),
                    error_type=type(exc).__name__,
                    remaining=len(self._pending)
                )
                self._record("failed")
                if not future.done():
                    future.set_exception(exc)
            else:
                self._record("completed")
                if not future.done():
                    future.set_result(result)
            finally:
                self._processing = False

        self._idle.set()

    def _record(self, status: str) -> None:
        if self.metrics is not None:
            self.metrics.increment_counter("gateway_queue_tasks_total", status=status)

    @property
    def size(self) -> int:
        """Tasks waiting to start."""
        return len(self._pending)

    @property
    def is_processing(self) -> bool:
        return self._processing

    async def join(self) -> None:
        """Wait until every enqueued task has settled."""
        await self._idle.wait()

    async def close(self) -> None:
        """Stop the worker and cancel tasks that have not started."""
        while self._pending:
            _, future = self._pending.popleft()
            future.cancel()

        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass

        self._worker = None
        self._processing = False
        self._idle.set()
