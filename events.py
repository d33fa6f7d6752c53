"""
Observer-style notifications emitted by the crawler.
"""

import asyncio
import inspect
from collections import defaultdict
from enum import Enum
from typing import Any, Callable

from utils.logger import logger


class CrawlEvent(str, Enum):
    ERROR = "error"
    NAVIGATED = "navigated"
    DOCUMENT = "document"
    PAUSED = "paused"
    RESUMED = "resumed"
    COMPLETE = "complete"


Listener = Callable[..., Any]


class EventEmitter:
    """
    Callback registry keyed by CrawlEvent.

    Emitting never raises: a listener that fails is logged and the remaining
    listeners still run. Coroutine listeners are scheduled as tasks on the
    running loop.
    """

    def __init__(self) -> None:
        self._listeners: dict[CrawlEvent, list[tuple[Listener, bool]]] = defaultdict(list)
        self._listener_tasks: set[asyncio.Task] = set()

    def on(self, event: CrawlEvent | str, listener: Listener) -> "EventEmitter":
        self._listeners[CrawlEvent(event)].append((listener, False))
        return self

    def once(self, event: CrawlEvent | str, listener: Listener) -> "EventEmitter":
        self._listeners[CrawlEvent(event)].append((listener, True))
        return self

    def off(self, event: CrawlEvent | str, listener: Listener) -> "EventEmitter":
        event = CrawlEvent(event)
        self._listeners[event] = [
            entry for entry in self._listeners[event] if entry[0] is not listener
        ]
        return self

    def listener_count(self, event: CrawlEvent | str) -> int:
        return len(self._listeners[CrawlEvent(event)])

    def emit(self, event: CrawlEvent | str, *args: Any) -> bool:
        """
        Notify every listener of `event`.

        Returns:
            True if at least one listener was registered
        """
        event = CrawlEvent(event)
        entries = list(self._listeners[event])

        if not entries:
            if event is CrawlEvent.ERROR:
                logger.error("Unhandled crawl error: %s", args[0] if args else None)
            return False

        self._listeners[event] = [entry for entry in self._listeners[event] if not entry[1]]

        for listener, _ in entries:
            try:
                result = listener(*args)
            except Exception:
                logger.exception("Listener %r for %r event failed", listener, event.value)
                continue

            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._listener_tasks.add(task)
                task.add_done_callback(self._listener_task_done)

        return True

    def _listener_task_done(self, task: asyncio.Task) -> None:
        self._listener_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Async listener failed", exc_info=task.exception())
