"""Versioned in-memory backend registry."""

from __future__ import annotations

import threading
from typing import Sequence

from flowgate.domain import Backend


class InMemory:
    """Holds the backend list; every swap bumps the version."""

    def __init__(self, backends: Sequence[Backend] | None = None) -> None:
        self._lock = threading.Lock()
        self._backends: list[Backend] = list(backends or ())
        self._version = 1

    def snapshot(self) -> list[Backend]:
        """A copy of the current list."""
        with self._lock:
            return list(self._backends)

    def version(self) -> int:
        with self._lock:
            return self._version

    def load(self) -> tuple[list[Backend], int]:
        with self._lock:
            return self._backends, self._version

    def swap(self, new_list: Sequence[Backend] | None) -> list[Backend]:
        """Replace the list and return the previous one."""
        with self._lock:
            old = self._backends
            self._backends = list(new_list or ())
            self._version += 1
            return old