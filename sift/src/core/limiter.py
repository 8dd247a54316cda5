"""
Sift - Bounded Concurrency Limiter
===================================
Counting limiter for ``asyncio`` with a strict FIFO wait queue.

A released permit is handed directly to the oldest waiter, so a task
arriving later can never overtake one that is already queued.  The
limiter also records the peak number of permits held at once, which the
pipeline reports and the tests assert on.

Usage:
    limiter = BoundedLimiter(4, name="batches")
    async with limiter.permit():
        ...
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class BoundedLimiter:
    """
    At most ``permits`` holders at any instant; waiters served in arrival order.
    """

    __slots__ = ("name", "_permits", "_in_use", "_waiters", "_peak")

    def __init__(self, permits: int, name: str = "limiter") -> None:
        if permits < 1:
            raise ValueError(f"permits must be ≥ 1, got {permits}")
        self.name = name
        self._permits = permits
        self._in_use = 0
        self._waiters: deque[asyncio.Future[None]] = deque()
        self._peak = 0

    @property
    def permits(self) -> int:
        return self._permits

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def waiting(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    @property
    def peak(self) -> int:
        """Highest number of permits held simultaneously so far."""
        return self._peak

    async def acquire(self) -> None:
        if self._in_use < self._permits and not self._waiters:
            self._in_use += 1
            self._peak = max(self._peak, self._in_use)
            return

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # The permit was handed over just before cancellation.
                self.release()
            elif waiter in self._waiters:
                self._waiters.remove(waiter)
            raise

    def release(self) -> None:
        if self._in_use <= 0:
            raise RuntimeError(f"{self.name}: release() without a matching acquire()")

        # Hand the permit straight to the oldest live waiter.
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return

        self._in_use -= 1

    @asynccontextmanager
    async def permit(self) -> AsyncIterator[None]:
        await self.acquire()
        try:
            yield
        finally:
            self.release()

    def __repr__(self) -> str:
        return f"BoundedLimiter(name='{self.name}', permits={self._permits}, in_use={self._in_use}, waiting={self.waiting})"
