# listing_ingest/adapters/parsers/rate_gate.py
from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable


class RateGate:
    """
    Minimum spacing between requests, per parser instance.

    Each caller reserves the next free slot under the lock, then sleeps until
    that slot outside the lock. Concurrent callers get distinct slots
    `interval` apart; nobody can pass on a stale read of the last timestamp.
    """

    def __init__(
        self,
        min_interval_s: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.min_interval_s = max(0.0, float(min_interval_s))
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_slot: float | None = None

    async def reserve(self) -> float:
        """Claim the next slot and return how long the caller must wait for it."""
        async with self._lock:
            now = self._clock()
            if self._last_slot is None:
                slot = now
            else:
                slot = max(now, self._last_slot + self.min_interval_s)
            self._last_slot = slot
            return slot - now

    async def wait(self) -> None:
        delay = await self.reserve()
        if delay > 0:
            await self._sleep(delay)
