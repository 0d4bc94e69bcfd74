import asyncio
import threading
import time

import pytest

from flowgate.domain import Backend
from flowgate.udp.session import Session


class FakeTransport:
    def __init__(self, closing=False, fail=False):
        self.close_calls = 0
        self._closing = closing
        self._fail = fail
        self._lock = threading.Lock()

    def close(self):
        with self._lock:
            self.close_calls += 1
        if self._fail:
            raise OSError("boom")
        self._closing = True

    def is_closing(self):
        return self._closing


CLIENT = ("127.0.0.1", 1234)


def test_new_session_sets_fields_and_touches():
    transport = FakeTransport()
    backend = Backend(id="be-1", addr="127.0.0.1:9000")
    before = time.monotonic_ns()
    s = Session(CLIENT, transport, backend)
    after = time.monotonic_ns()

    assert s.client_addr == CLIENT
    assert s.backend_transport is transport
    assert s.backend is backend
    assert before <= s.idle_since() <= after


def test_touch_advances_idle_since():
    s = Session(("127.0.0.1", 1), FakeTransport(), Backend(id="b", addr="x:1"))
    first = s.idle_since()
    time.sleep(0.002)
    s.touch()
    assert s.idle_since() > first


def test_close_closes_backend_transport():
    transport = FakeTransport()
    s = Session(("127.0.0.1", 1), transport, Backend(id="b", addr="x:1"))
    s.close()
    assert transport.close_calls == 1
    assert transport.is_closing()


def test_close_idempotent():
    transport = FakeTransport()
    s = Session(("127.0.0.1", 1), transport, Backend(id="b", addr="x:1"))
    s.close()
    s.close()
    s.close()
    assert transport.close_calls == 1


def test_close_skips_already_closed_transport():
    transport = FakeTransport(closing=True)
    s = Session(("127.0.0.1", 1), transport, Backend(id="b", addr="x:1"))
    s.close()
    assert transport.close_calls == 0


def test_close_wraps_os_error():
    s = Session(("127.0.0.1", 1), FakeTransport(fail=True), Backend(id="b", addr="x:1"))
    with pytest.raises(OSError, match="session close backend"):
        s.close()


def test_close_concurrent_closes_once():
    transport = FakeTransport()
    s = Session(("127.0.0.1", 1), transport, Backend(id="b", addr="x:1"))
    errors = []

    def worker():
        try:
            s.close()
        except Exception as exc:  # noqa: BLE001
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(32)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert errors == []
    assert transport.close_calls == 1


@pytest.mark.asyncio
async def test_close_real_datagram_transport():
    loop = asyncio.get_running_loop()
    transport, _ = await loop.create_datagram_endpoint(
        asyncio.DatagramProtocol, local_addr=("127.0.0.1", 0)
    )
    s = Session(("127.0.0.1", 1), transport, Backend(id="b", addr="x:1"))
    s.close()
    assert transport.is_closing()