from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ItemStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    ENDED = "ended"


class QueueItem(BaseModel):
    """
    One pending or in-flight crawl target.

    Owned by the queue store that created it; the crawler only holds the
    item while a worker task processes it.
    """
    url: str
    id: int
    status: ItemStatus = ItemStatus.PENDING
    error: Optional[str] = None  # Outcome recorded by end()
