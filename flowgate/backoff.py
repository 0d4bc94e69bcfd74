"""Exponential backoff used between retried accept attempts."""

from __future__ import annotations

import asyncio


class Exponential:
    """Doubling delay, capped at a maximum, in seconds."""

    def __init__(self, base: float, maximum: float) -> None:
        if base <= 0:
            raise ValueError(f"backoff base must be positive: {base}")
        if maximum <= base:
            raise ValueError(
                f"backoff max must be greater than base: max={maximum} base={base}"
            )
        self._base = base
        self._max = maximum
        self._current = base

    def duration(self) -> float:
        """The delay the next wait will use."""
        return self._current

    def reset(self) -> None:
        self._current = self._base

    async def wait(self) -> None:
        """Sleep for the current delay, then double it up to the maximum.

        If the waiting task is cancelled, the delay is left unchanged.
        """
        await asyncio.sleep(self._current)
        self._current = min(self._current * 2, self._max)