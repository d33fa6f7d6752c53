"""
Tests for the bounded-concurrency worker pool.
"""

import asyncio

import pytest

from worker_pool import WorkerPool


@pytest.mark.asyncio
class TestWorkerPool:
    """Test suite for WorkerPool."""

    async def test_never_exceeds_concurrency(self):
        """At most `concurrency` workers run at the same time."""
        active = 0
        peak = 0

        async def worker(item):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

        pool = WorkerPool(worker, 3)
        for item in range(10):
            pool.push(item)

        assert pool.running() == 3
        assert pool.length() == 7

        await asyncio.wait_for(pool.join(), timeout=5)

        assert peak == 3
        assert pool.idle()

    async def test_drain_hook_fires_when_last_task_finishes(self):
        """Drain fires once nothing is pending or running."""
        drained = []
        processed = []

        async def worker(item):
            await asyncio.sleep(0)
            processed.append(item)

        pool = WorkerPool(worker, 2, on_drain=lambda: drained.append(len(processed)))
        for item in range(4):
            pool.push(item)

        await asyncio.wait_for(pool.join(), timeout=5)

        assert sorted(processed) == [0, 1, 2, 3]
        assert drained == [4]

    async def test_clear_drops_only_pending_items(self):
        """Clearing leaves running tasks alone."""
        release = asyncio.Event()
        processed = []

        async def worker(item):
            await release.wait()
            processed.append(item)

        pool = WorkerPool(worker, 1)
        for item in ["a", "b", "c"]:
            pool.push(item)

        dropped = pool.clear()

        assert dropped == ["b", "c"]
        assert pool.length() == 0
        assert pool.running() == 1

        release.set()
        await asyncio.wait_for(pool.join(), timeout=5)

        assert processed == ["a"]

    async def test_worker_exception_is_reported(self):
        """A failing worker is handed to on_error and the pool carries on."""
        failures = []

        async def worker(item):
            if item == "bad":
                raise ValueError("boom")

        pool = WorkerPool(worker, 1, on_error=lambda error, item: failures.append((item, str(error))))
        pool.push("bad")
        pool.push("good")

        await asyncio.wait_for(pool.join(), timeout=5)

        assert failures == [("bad", "boom")]
        assert pool.idle()

    async def test_concurrency_must_be_positive(self):
        async def worker(item):
            pass

        with pytest.raises(ValueError):
            WorkerPool(worker, 0)
