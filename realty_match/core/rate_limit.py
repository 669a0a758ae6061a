from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable


class TokenBucket:
    """
    Token bucket with continuous refill. Capacity equals the per-minute
    budget and the bucket starts full. Admission is serialized so callers
    queue in arrival order and a refill can never over-admit.
    """

    def __init__(
        self,
        requests_per_minute: int,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        if requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be positive.")
        self.capacity = float(requests_per_minute)
        self.refill_per_second = requests_per_minute / 60.0
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep
        self._tokens = self.capacity
        self._last_refill = self._clock()
        self._lock = asyncio.Lock()

    @property
    def available(self) -> float:
        self._refill()
        return self._tokens

    async def acquire(self) -> None:
        async with self._lock:
            while True:
                self._refill()
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return
                wait_seconds = (1.0 - self._tokens) / self.refill_per_second
                await self._sleep(wait_seconds)

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._tokens = min(self.capacity, self._tokens + elapsed * self.refill_per_second)
            self._last_refill = now
