# listing_ingest/adapters/clients/inflight.py
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Generic, TypeVar

T = TypeVar("T")


class InFlightRequests(Generic[T]):
    """
    Collapse concurrent identical requests into one upstream call.

    Every caller awaits the same task and gets the same result or error.
    The key is dropped when that task settles, success or not, so a failed
    call never sticks around for later callers.
    """

    def __init__(self) -> None:
        self._inflight: dict[str, asyncio.Task[T]] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._inflight

    def __len__(self) -> int:
        return len(self._inflight)

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._settle(key, factory))
            self._inflight[key] = task
        # shield: one impatient caller must not cancel the call for the others
        return await asyncio.shield(task)

    async def _settle(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        try:
            return await factory()
        finally:
            self._inflight.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._inflight)

    def stats(self) -> dict[str, Any]:
        return {"in_flight": len(self._inflight), "keys": self.keys()}
