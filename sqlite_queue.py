"""
Persistent queue store backed by SQLite.

Items survive restarts: anything left active by an interrupted crawl goes
back to pending when the store is reopened.
"""

import asyncio
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import aiosqlite
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from errors import QueueStoreError
from models.queue_item import ItemStatus, QueueItem
from queue_store import describe_error
from utils.logger import logger

SCHEMA = """
CREATE TABLE IF NOT EXISTS queue_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    url TEXT UNIQUE NOT NULL,
    status TEXT NOT NULL,      -- 'pending', 'active' or 'ended'
    error TEXT,                -- outcome recorded by end()
    added_at TEXT NOT NULL,
    ended_at TEXT
);
CREATE INDEX IF NOT EXISTS queue_items_status ON queue_items (status, id);
"""


def now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_locked(error: BaseException) -> bool:
    return isinstance(error, sqlite3.OperationalError) and "locked" in str(error).lower()


class SqliteQueueStore:
    """
    Queue store persisted in a single SQLite file.

    The database is opened on first use. URLs are unique per database, so
    re-adding a known URL is a no-op.
    """

    def __init__(self, path: str | Path, *, requeue_active: bool = True):
        self.path = str(path)
        self.requeue_active = requeue_active
        self._db: Optional[aiosqlite.Connection] = None
        self._closed = False
        self._lock = asyncio.Lock()
        self._open_lock = asyncio.Lock()

    async def open(self) -> "SqliteQueueStore":
        """Open the database, create the schema and requeue interrupted items."""
        async with self._open_lock:
            if self._db is not None:
                return self
            if self._closed:
                raise QueueStoreError(f"Queue database {self.path} is closed")

            try:
                db = await aiosqlite.connect(self.path)
                db.row_factory = aiosqlite.Row
                await db.executescript(SCHEMA)
                await db.commit()
            except sqlite3.Error as e:
                raise QueueStoreError(f"Cannot open queue database {self.path}: {e}") from e
            self._db = db

            if self.requeue_active:
                requeued = await self._execute(
                    "UPDATE queue_items SET status = ? WHERE status = ?",
                    (ItemStatus.PENDING.value, ItemStatus.ACTIVE.value),
                )
                if requeued:
                    logger.info("Requeued %d interrupted item(s) from %s", requeued, self.path)
        return self

    async def _connection(self) -> aiosqlite.Connection:
        if self._db is None:
            await self.open()
        return self._db

    @retry(
        stop=stop_after_attempt(5),
        wait=wait_fixed(0.1),
        retry=retry_if_exception(_is_locked),
        reraise=True,
    )
    async def _run(self, sql: str, params: tuple[Any, ...], fetch: bool) -> Any:
        db = self._db
        cursor = await db.execute(sql, params)
        if fetch:
            rows = await cursor.fetchall()
            await cursor.close()
            return rows
        await db.commit()
        return cursor.rowcount

    async def _execute(self, sql: str, params: tuple[Any, ...] = ()) -> int:
        """Run a write statement and return the affected row count."""
        await self._connection()
        try:
            return await self._run(sql, params, False)
        except sqlite3.Error as e:
            raise QueueStoreError(f"Queue database error: {e}") from e

    async def _query(self, sql: str, params: tuple[Any, ...] = ()) -> list[aiosqlite.Row]:
        await self._connection()
        try:
            return await self._run(sql, params, True)
        except sqlite3.Error as e:
            raise QueueStoreError(f"Queue database error: {e}") from e

    async def add(self, url: str) -> None:
        await self._execute(
            "INSERT OR IGNORE INTO queue_items (url, status, added_at) VALUES (?, ?, ?)",
            (url, ItemStatus.PENDING.value, now()),
        )

    async def get(self) -> Optional[QueueItem]:
        # Select and claim must not interleave with another get().
        async with self._lock:
            rows = await self._query(
                "SELECT id, url FROM queue_items WHERE status = ? ORDER BY id LIMIT 1",
                (ItemStatus.PENDING.value,),
            )
            if not rows:
                return None

            row = rows[0]
            await self._execute(
                "UPDATE queue_items SET status = ? WHERE id = ?",
                (ItemStatus.ACTIVE.value, row["id"]),
            )
        return QueueItem(url=row["url"], id=row["id"], status=ItemStatus.ACTIVE)

    async def end(self, item: QueueItem, error: Optional[BaseException]) -> QueueItem:
        message = describe_error(error)
        updated = await self._execute(
            "UPDATE queue_items SET status = ?, error = ?, ended_at = ? "
            "WHERE id = ? AND status = ?",
            (ItemStatus.ENDED.value, message, now(), item.id, ItemStatus.ACTIVE.value),
        )
        if updated == 0:
            raise QueueStoreError(f"Item {item.id} ({item.url}) is not active")
        return item.model_copy(update={"status": ItemStatus.ENDED, "error": message})

    async def counts(self) -> dict[str, int]:
        """Return item counts per status for logs and tests."""
        counts = {status.value: 0 for status in ItemStatus}
        rows = await self._query(
            "SELECT status, COUNT(*) AS n FROM queue_items GROUP BY status"
        )
        for row in rows:
            counts[row["status"]] = row["n"]
        return counts

    async def close(self) -> None:
        self._closed = True
        if self._db is not None:
            await self._db.close()
            self._db = None
