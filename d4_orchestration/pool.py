"""
Bounded-concurrency worker pool
"""
import asyncio
from typing import Any, Awaitable, Callable, Iterable, List, Optional, TypeVar

from core.logging import get_logger

logger = get_logger(__name__, domain="d4")

T = TypeVar("T")
R = TypeVar("R")


class WorkerPool:
    """
    Runs one coroutine per item with at most `concurrency` in flight

    Results come back in input order; a worker that raises yields its
    exception in place of a result. A failing `on_done` callback is logged
    and never replaces the result.
    """

    def __init__(self, concurrency: int = 3):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.concurrency = concurrency
        self._semaphore = asyncio.Semaphore(concurrency)
        self.active = 0
        self.peak = 0

    async def _run(
        self,
        item: T,
        worker: Callable[[T], Awaitable[R]],
        on_done: Optional[Callable[[T, Any], Awaitable[None]]],
    ) -> R:
        async with self._semaphore:
            self.active += 1
            self.peak = max(self.peak, self.active)
            try:
                result = await worker(item)
            finally:
                self.active -= 1

        if on_done is not None:
            try:
                await on_done(item, result)
            except Exception as e:
                logger.warning(f"Completion callback failed for {item!r}: {e}")
        return result

    async def map(
        self,
        items: Iterable[T],
        worker: Callable[[T], Awaitable[R]],
        on_done: Optional[Callable[[T, Any], Awaitable[None]]] = None,
    ) -> List[Any]:
        items = list(items)
        logger.debug(f"Running {len(items)} tasks with concurrency {self.concurrency}")
        return await asyncio.gather(*(self._run(item, worker, on_done) for item in items), return_exceptions=True)
