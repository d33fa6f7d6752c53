"""
Queue store contract and the default in-memory store.
"""

import itertools
from collections import deque
from typing import Optional, Protocol, runtime_checkable

from models.queue_item import ItemStatus, QueueItem
from errors import QueueStoreError


@runtime_checkable
class QueueStore(Protocol):
    """
    Backend holding pending and active crawl items.

    `get` must return None rather than block when nothing is pending, and
    must never hand the same item out twice. Failures are raised as
    QueueStoreError.
    """

    async def add(self, url: str) -> None: ...

    async def get(self) -> Optional[QueueItem]: ...

    async def end(self, item: QueueItem, error: Optional[BaseException]) -> QueueItem: ...


def describe_error(error: Optional[BaseException]) -> Optional[str]:
    if error is None:
        return None
    return f"{error.__class__.__name__}: {error}"


class MemoryQueueStore:
    """
    Process-local queue store.

    A URL is accepted once per store; later adds of the same string are
    ignored whatever the first item's status.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._items: dict[str, QueueItem] = {}
        self._pending: deque[QueueItem] = deque()
        self._active: dict[int, QueueItem] = {}

    async def add(self, url: str) -> None:
        if url in self._items:
            return
        item = QueueItem(url=url, id=next(self._ids))
        self._items[url] = item
        self._pending.append(item)

    async def get(self) -> Optional[QueueItem]:
        if not self._pending:
            return None
        item = self._pending.popleft()
        item.status = ItemStatus.ACTIVE
        self._active[item.id] = item
        return item

    async def end(self, item: QueueItem, error: Optional[BaseException]) -> QueueItem:
        tracked = self._active.pop(item.id, None)
        if tracked is None:
            raise QueueStoreError(f"Item {item.id} ({item.url}) is not active")
        tracked.status = ItemStatus.ENDED
        tracked.error = describe_error(error)
        return tracked

    def counts(self) -> dict[str, int]:
        """Return item counts per status for logs and tests."""
        counts = {status.value: 0 for status in ItemStatus}
        for item in self._items.values():
            counts[item.status.value] += 1
        return counts
