"""A UDP client session bound to one backend."""

from __future__ import annotations

import threading
import time

from flowgate.domain import Backend


class Session:
    """Tracks one client address, its backend transport and when it was last active."""

    def __init__(self, client_addr, backend_transport, backend: Backend) -> None:
        self.client_addr = client_addr
        self.backend_transport = backend_transport
        self.backend = backend
        self._last_active = 0
        self._closed = False
        self._lock = threading.Lock()
        self.touch()

    def touch(self) -> None:
        """Mark the session as active now."""
        self._last_active = time.monotonic_ns()

    def idle_since(self) -> int:
        """Monotonic nanoseconds of the last activity."""
        return self._last_active

    def close(self) -> None:
        """Close the backend transport once; later calls do nothing."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        if self.backend_transport.is_closing():
            return
        try:
            self.backend_transport.close()
        except OSError as exc:
            raise OSError(f"udp: session close backend: {exc}") from exc