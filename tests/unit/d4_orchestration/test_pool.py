"""
Tests for the bounded worker pool
"""
import asyncio

import pytest

from d4_orchestration.pool import WorkerPool


class TestWorkerPool:
    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        pool = WorkerPool(concurrency=3)
        runs = []

        async def worker(item):
            runs.append(item)
            await asyncio.sleep(0.01)
            return item * 10

        results = await pool.map(range(5), worker)

        assert results == [0, 10, 20, 30, 40]
        assert sorted(runs) == [0, 1, 2, 3, 4]
        assert pool.peak == 3
        assert pool.active == 0

    @pytest.mark.asyncio
    async def test_failures_come_back_in_place(self):
        async def worker(item):
            if item == "bad":
                raise RuntimeError("boom")
            return item.upper()

        results = await WorkerPool(2).map(["a", "bad", "c"], worker)

        assert results[0] == "A"
        assert isinstance(results[1], RuntimeError)
        assert results[2] == "C"

    @pytest.mark.asyncio
    async def test_on_done_runs_for_each_success(self):
        done = []

        async def worker(item):
            await asyncio.sleep(0.001 * (3 - item))
            return item

        async def on_done(item, result):
            done.append((item, result))

        await WorkerPool(3).map([0, 1, 2], worker, on_done=on_done)

        assert sorted(done) == [(0, 0), (1, 1), (2, 2)]

    @pytest.mark.asyncio
    async def test_failing_on_done_keeps_worker_result(self):
        async def worker(item):
            return item * 2

        async def on_done(item, result):
            if item == 1:
                raise RuntimeError("progress write failed")

        results = await WorkerPool(2).map([0, 1, 2], worker, on_done=on_done)

        assert results == [0, 2, 4]

    def test_invalid_concurrency(self):
        with pytest.raises(ValueError):
            WorkerPool(0)
