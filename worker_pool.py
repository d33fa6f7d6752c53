"""
Bounded-concurrency executor for crawl tasks.
"""

import asyncio
from collections import deque
from typing import Any, Awaitable, Callable, Optional

from utils.logger import logger

Worker = Callable[[Any], Awaitable[None]]


class WorkerPool:
    """
    Runs at most `concurrency` worker coroutines at once.

    Items pushed while every slot is busy wait in a FIFO pending queue. The
    drain hook fires each time the last running task finishes and nothing is
    pending. All bookkeeping happens on the event loop thread.
    """

    def __init__(
        self,
        worker: Worker,
        concurrency: int,
        *,
        on_drain: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[BaseException, Any], None]] = None,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")

        self.concurrency = concurrency
        self.on_drain = on_drain
        self.on_error = on_error
        self._worker = worker
        self._pending: deque[Any] = deque()
        self._running: dict[asyncio.Task, Any] = {}
        self._idle = asyncio.Event()
        self._idle.set()

    def push(self, item: Any) -> None:
        self._pending.append(item)
        self._idle.clear()
        self._dispatch()

    def length(self) -> int:
        """Number of items waiting for a free slot."""
        return len(self._pending)

    def running(self) -> int:
        return len(self._running)

    def idle(self) -> bool:
        return not self._pending and not self._running

    def clear(self) -> list[Any]:
        """Drop every pending item and return them; running tasks are untouched."""
        dropped = list(self._pending)
        self._pending.clear()
        if self.idle():
            self._idle.set()
        return dropped

    async def join(self) -> None:
        """Wait until nothing is pending or running."""
        await self._idle.wait()

    def _dispatch(self) -> None:
        while self._pending and len(self._running) < self.concurrency:
            item = self._pending.popleft()
            task = asyncio.ensure_future(self._worker(item))
            self._running[task] = item
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        item = self._running.pop(task)

        if not task.cancelled() and task.exception() is not None:
            error = task.exception()
            if self.on_error is not None:
                self.on_error(error, item)
            else:
                logger.error("Worker failed for %r", item, exc_info=error)

        self._dispatch()

        if self.idle():
            self._idle.set()
            if self.on_drain is not None:
                self.on_drain()
