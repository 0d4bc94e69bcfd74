"""Domain errors and the backend model shared by balancers and proxies."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field


class NoBackendsError(LookupError):
    """Raised when no backend is available to serve a connection."""

    def __init__(self, message: str = "no backends available") -> None:
        super().__init__(message)


class ProxyStartedError(RuntimeError):
    """Raised when a proxy is started twice."""

    def __init__(self, message: str = "proxy already started") -> None:
        super().__init__(message)


class ProxyStoppedError(RuntimeError):
    """Raised when a proxy is started after it has been stopped."""

    def __init__(self, message: str = "proxy already stopped") -> None:
        super().__init__(message)


@dataclass(eq=False)
class Backend:
    """An upstream server with a weight and a live connection counter."""

    id: str
    addr: str
    weight: int = 1
    _active: int = field(default=0, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @classmethod
    def create(cls, addr: str, weight: int, idx: int) -> "Backend":
        """Build a backend; non-positive weights become 1."""
        if weight <= 0:
            weight = 1
        return cls(id=f"{addr}#{idx}", addr=addr, weight=weight)

    @property
    def active_conns(self) -> int:
        with self._lock:
            return self._active

    @active_conns.setter
    def active_conns(self, value: int) -> None:
        with self._lock:
            self._active = value

    def increment(self) -> int:
        """Add one active connection and return the new count."""
        with self._lock:
            self._active += 1
            return self._active

    def decrement(self) -> bool:
        """Remove one active connection unless the count is already zero."""
        with self._lock:
            if self._active <= 0:
                return False
            self._active -= 1
            return True