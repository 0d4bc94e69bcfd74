"""Least-connections and smooth weighted round-robin balancers."""

from __future__ import annotations

import threading
from typing import Protocol, Sequence

from flowgate.domain import Backend, NoBackendsError


class Snapshotter(Protocol):
    def snapshot(self) -> Sequence[Backend]: ...


class Sourcer(Protocol):
    def load(self) -> tuple[Sequence[Backend], int]: ...


class LeastConn:
    """Picks the backend with the fewest active connections."""

    def __init__(self, snapshotter: Snapshotter) -> None:
        self._snap = snapshotter
        self._lock = threading.Lock()

    def pick(self) -> Backend:
        backends = self._snap.snapshot()
        if not backends:
            raise NoBackendsError()
        with self._lock:
            best = backends[0]
            best_conns = best.active_conns
            for b in backends[1:]:
                conns = b.active_conns
                if conns < best_conns:
                    best, best_conns = b, conns
                elif conns == best_conns and b.weight > best.weight:
                    best = b
            best.increment()
        return best

    def release(self, backend: Backend | None) -> None:
        if backend is not None:
            backend.decrement()


class RoundRobin:
    """Smooth weighted round-robin; state resets when the source version changes."""

    def __init__(self, source: Sourcer) -> None:
        self._src = source
        self._lock = threading.Lock()
        backends, self._version = source.load()
        self._weights = [0] * len(backends)

    def pick(self) -> Backend:
        with self._lock:
            backends, version = self._src.load()
            if version != self._version:
                self._version = version
                self._weights = [0] * len(backends or ())
            if not backends:
                raise NoBackendsError()
            total = 0
            best = -1
            for i, b in enumerate(backends):
                self._weights[i] += b.weight
                total += b.weight
                if best == -1 or self._weights[i] > self._weights[best]:
                    best = i
            self._weights[best] -= total
            return backends[best]

    def release(self, backend: Backend | None) -> None:
        """Round-robin keeps no per-connection state."""