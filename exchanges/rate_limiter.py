from __future__ import annotations

import asyncio
import time
from typing import Set


class RateLimiter:
    """
    Minimum-interval limiter shared by every request a client makes.

    Requests are spaced 60/rpm seconds apart, with at most `burst` permits outstanding.
    """

    def __init__(self, requests_per_minute: int = 120, burst: int = 10):
        self.requests_per_minute = max(1, requests_per_minute)
        self.interval = 60.0 / self.requests_per_minute
        self.burst = max(1, burst)
        self._semaphore = asyncio.BoundedSemaphore(self.burst)
        self._lock = asyncio.Lock()
        self._last_request_at = 0.0
        self._releases: Set[asyncio.Task] = set()

    async def acquire(self) -> None:
        await self._semaphore.acquire()
        async with self._lock:
            wait_time = self.interval - (time.monotonic() - self._last_request_at)
            if wait_time > 0:
                await asyncio.sleep(wait_time)
            self._last_request_at = time.monotonic()

        task = asyncio.create_task(self._delayed_release())
        self._releases.add(task)
        task.add_done_callback(self._releases.discard)

    async def _delayed_release(self) -> None:
        await asyncio.sleep(self.interval)
        self._semaphore.release()

    async def close(self) -> None:
        for task in list(self._releases):
            task.cancel()
        self._releases.clear()
