"""Optional cap on concurrently served connections."""

from __future__ import annotations

import asyncio


class Concurrency:
    """An async semaphore; a non-positive limit disables it."""

    def __init__(self, limit: int) -> None:
        self._sem = asyncio.Semaphore(limit) if limit > 0 else None

    @property
    def enabled(self) -> bool:
        return self._sem is not None

    async def acquire(self) -> None:
        if self._sem is not None:
            await self._sem.acquire()

    def release(self) -> None:
        if self._sem is not None:
            self._sem.release()