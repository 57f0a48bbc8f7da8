"""Minimum-interval rate limiting for the crawler.

Each limiter guarantees that two acquisitions for the same key are at least
`min_interval` seconds apart. Callers await acquire() before every request.
"""

import asyncio
import time
from typing import Awaitable, Callable, Dict


class RateLimiter:
    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = max(0.0, min_interval)
        self._clock = clock
        self._sleep = sleep
        self._last: Dict[str, float] = {}

    async def acquire(self, key: str = "default"):
        last = self._last.get(key)
        if last is not None:
            remaining = self.min_interval - (self._clock() - last)
            if remaining > 0:
                await self._sleep(remaining)
        self._last[key] = self._clock()
