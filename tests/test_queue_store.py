"""
Tests for the in-memory and SQLite queue stores.
"""

import asyncio
import sqlite3
from unittest.mock import AsyncMock, patch

import pytest

from errors import QueueStoreError
from models.queue_item import ItemStatus
from queue_store import MemoryQueueStore, QueueStore
from sqlite_queue import SqliteQueueStore


@pytest.mark.asyncio
class TestMemoryQueueStore:
    """Test suite for MemoryQueueStore."""

    async def test_satisfies_protocol(self):
        assert isinstance(MemoryQueueStore(), QueueStore)

    async def test_items_come_out_in_insertion_order(self):
        store = MemoryQueueStore()
        await store.add("http://example.com/a")
        await store.add("http://example.com/b")

        first = await store.get()
        second = await store.get()

        assert first.url == "http://example.com/a"
        assert second.url == "http://example.com/b"
        assert first.status is ItemStatus.ACTIVE
        assert await store.get() is None

    async def test_duplicate_urls_are_ignored(self):
        store = MemoryQueueStore()
        await store.add("http://example.com/a")
        await store.add("http://example.com/a")

        item = await store.get()
        await store.end(item, None)
        await store.add("http://example.com/a")

        assert await store.get() is None
        assert store.counts() == {"pending": 0, "active": 0, "ended": 1}

    async def test_end_records_outcome(self):
        store = MemoryQueueStore()
        await store.add("http://example.com/a")
        item = await store.get()

        ended = await store.end(item, ValueError("broken page"))

        assert ended.status is ItemStatus.ENDED
        assert ended.error == "ValueError: broken page"

    async def test_end_of_unknown_item_fails(self):
        store = MemoryQueueStore()
        await store.add("http://example.com/a")
        item = await store.get()
        await store.end(item, None)

        with pytest.raises(QueueStoreError):
            await store.end(item, None)


@pytest.mark.asyncio
class TestSqliteQueueStore:
    """Test suite for SqliteQueueStore."""

    async def test_add_get_end_cycle(self, tmp_path):
        store = SqliteQueueStore(tmp_path / "queue.db")
        try:
            await store.add("http://example.com/a")
            await store.add("http://example.com/a")
            await store.add("http://example.com/b")

            item = await store.get()
            assert item.url == "http://example.com/a"
            assert item.status is ItemStatus.ACTIVE

            ended = await store.end(item, None)
            assert ended.status is ItemStatus.ENDED
            assert await store.counts() == {"pending": 1, "active": 0, "ended": 1}
        finally:
            await store.close()

    async def test_concurrent_gets_never_share_an_item(self, tmp_path):
        store = SqliteQueueStore(tmp_path / "queue.db")
        try:
            for i in range(5):
                await store.add(f"http://example.com/p{i}")

            items = await asyncio.gather(*(store.get() for _ in range(5)))

            assert sorted(item.id for item in items) == sorted({item.id for item in items})
            assert await store.get() is None
        finally:
            await store.close()

    async def test_end_records_error_text(self, tmp_path):
        store = SqliteQueueStore(tmp_path / "queue.db")
        try:
            await store.add("http://example.com/a")
            item = await store.get()

            ended = await store.end(item, RuntimeError("timeout"))

            assert ended.error == "RuntimeError: timeout"
            with pytest.raises(QueueStoreError):
                await store.end(item, None)
        finally:
            await store.close()

    async def test_active_items_are_requeued_on_reopen(self, tmp_path):
        path = tmp_path / "queue.db"
        store = SqliteQueueStore(path)
        await store.add("http://example.com/a")
        await store.add("http://example.com/b")
        interrupted = await store.get()
        await store.close()

        reopened = SqliteQueueStore(path)
        try:
            item = await reopened.get()
            assert item.url == interrupted.url
            assert (await reopened.counts())["active"] == 1
        finally:
            await reopened.close()

    async def test_locked_database_is_retried(self, tmp_path):
        store = SqliteQueueStore(tmp_path / "queue.db")
        await store.open()
        real_execute = store._db.execute
        attempts = []

        async def flaky_execute(sql, params=()):
            attempts.append(sql)
            if len(attempts) == 1:
                raise sqlite3.OperationalError("database is locked")
            return await real_execute(sql, params)

        try:
            with patch.object(store._db, "execute", new=AsyncMock(side_effect=flaky_execute)):
                await store.add("http://example.com/a")

            assert len(attempts) == 2
            assert (await store.counts())["pending"] == 1
        finally:
            await store.close()

    async def test_closed_store_raises_queue_store_error(self, tmp_path):
        store = SqliteQueueStore(tmp_path / "queue.db")
        await store.close()

        with pytest.raises(QueueStoreError):
            await store.add("http://example.com/a")

    async def test_unopenable_path_raises_queue_store_error(self, tmp_path):
        store = SqliteQueueStore(tmp_path / "missing" / "queue.db")

        with pytest.raises(QueueStoreError):
            await store.add("http://example.com/a")
