import asyncio
import socket

import pytest

from flowgate.tcp.ops import close_write, is_benign_close, set_keepalive


class _NoSocketWriter:
    def __init__(self):
        self.queried = []
        self.closed = False

    def get_extra_info(self, name, default=None):
        self.queried.append(name)
        return default

    def can_write_eof(self):
        return False

    def close(self):
        self.closed = True


async def _tcp_pair():
    fut = asyncio.get_running_loop().create_future()

    async def on_conn(r, w):
        fut.set_result((r, w))

    server = await asyncio.start_server(on_conn, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    cr, cw = await asyncio.open_connection("127.0.0.1", port)
    sr, sw = await fut
    server.close()
    return cr, cw, sr, sw


def test_set_keepalive_non_tcp_is_noop():
    w = _NoSocketWriter()
    assert set_keepalive(w, 1.0) is None
    assert w.queried == ["socket"]
    assert w.closed is False


@pytest.mark.asyncio
async def test_set_keepalive_tcp_enables_option():
    cr, cw, sr, sw = await _tcp_pair()
    set_keepalive(cw, 30)
    sock = cw.get_extra_info("socket")
    assert sock.getsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE) > 0
    cw.close()
    sw.close()


@pytest.mark.asyncio
async def test_close_write_tcp_half_close():
    cr, cw, sr, sw = await _tcp_pair()
    cw.write(b"hi")
    close_write(cw)
    assert cw.is_closing() is False
    received = await asyncio.wait_for(sr.read(), 2)
    sw.write(b"bye")
    await sw.drain()
    sw.close()
    reply = await asyncio.wait_for(cr.read(), 2)
    assert received == b"hi"
    assert reply == b"bye"
    cw.close()


def test_close_write_without_half_close_closes_fully():
    w = _NoSocketWriter()
    close_write(w)
    assert w.closed is True


@pytest.mark.parametrize(
    ("exc", "benign"),
    [
        (None, True),
        (EOFError(), True),
        (asyncio.IncompleteReadError(b"", 4), True),
        (BrokenPipeError(), True),
        (ExceptionGroup("ctx", [ValueError("ctx"), EOFError()]), True),
        (ValueError("boom"), False),
    ],
)
def test_is_benign_close(exc, benign):
    assert is_benign_close(exc) is benign


def test_is_benign_close_follows_cause():
    try:
        try:
            raise EOFError()
        except EOFError as inner:
            raise RuntimeError("wrapped") from inner
    except RuntimeError as outer:
        assert is_benign_close(outer) is True