"""Client-address to session table with idle eviction."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Callable

from flowgate.udp.session import Session


def _fmt(addr) -> str:
    if isinstance(addr, tuple) and len(addr) >= 2:
        return f"{addr[0]}:{addr[1]}"
    return str(addr)


class Table:
    """Holds sessions by client address and evicts those idle longer than ttl seconds.

    When both ttl and gc_interval are positive a collector task is started,
    which requires a running event loop.
    """

    def __init__(self, ttl: float, gc_interval: float, log: logging.Logger,
                 on_evict: Callable[[Session], object]) -> None:
        self._ttl = ttl
        self._log = log
        self._on_evict = on_evict
        self._sessions: dict = {}
        self._lock = threading.Lock()
        self._gc_task: asyncio.Task | None = None
        if ttl > 0 and gc_interval > 0:
            self._gc_task = asyncio.get_running_loop().create_task(self._gc(gc_interval))

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def get(self, addr) -> Session | None:
        with self._lock:
            return self._sessions.get(addr)

    def load_or_store(self, addr, session: Session) -> tuple[Session, bool]:
        """Store session unless one exists; return the stored one and whether it existed."""
        with self._lock:
            actual = self._sessions.setdefault(addr, session)
        return actual, actual is not session

    def delete(self, addr) -> None:
        """Remove the session, hand it to on_evict and close it."""
        self._evict(addr, "udp: session close")

    def close(self) -> None:
        """Stop the collector and evict every remaining session."""
        task, self._gc_task = self._gc_task, None
        if task is not None:
            task.cancel()
        with self._lock:
            addrs = list(self._sessions)
        for addr in addrs:
            self._evict(addr, "udp: session close on shutdown")

    def _evict(self, addr, message: str) -> None:
        with self._lock:
            session = self._sessions.pop(addr, None)
        if session is None:
            return
        self._on_evict(session)
        try:
            session.close()
        except OSError as exc:
            self._log.warning(message, extra={"client": _fmt(addr), "error": repr(exc)})

    async def _gc(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self._evict_expired(time.monotonic_ns())

    def _evict_expired(self, now: int) -> None:
        cutoff = now - int(self._ttl * 1_000_000_000)
        with self._lock:
            stale = [a for a, s in self._sessions.items() if s.idle_since() <= cutoff]
        for addr in stale:
            self.delete(addr)