"""Shared token-bucket limiter for outbound role mutations."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable


class RateGate:
    """Token bucket shared by every task that mutates roles.

    ``acquire`` suspends only the calling task. Waiters are served one at a
    time through an internal lock, which gives roughly FIFO ordering.
    Cancelling a waiter leaves the bucket untouched.
    """

    def __init__(
        self,
        per_minute: int = 10,
        burst: int = 3,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if per_minute <= 0:
            raise ValueError("per_minute must be positive")
        if burst <= 0:
            raise ValueError("burst must be positive")
        self._rate = per_minute / 60.0
        self._capacity = float(burst)
        self._tokens = float(burst)
        self._clock = clock
        self._sleep = sleep
        self._updated = clock()
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
                await self._sleep((1.0 - self._tokens) / self._rate)

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._updated = now
        self._tokens = min(self._capacity, self._tokens + elapsed * self._rate)
