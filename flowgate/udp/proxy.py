"""UDP proxy: per-client sessions forwarded to balanced backends."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from flowgate.domain import ProxyStartedError, ProxyStoppedError
from flowgate.udp.session import Session
from flowgate.udp.table import Table

INBOX_SIZE = 1024
REPLY_QUEUE_SIZE = 1024
GC_DIVISOR = 2
DEFAULT_GC_INTERVAL = 10.0

Dialer = Callable[[str, Callable[[], asyncio.DatagramProtocol]], Awaitable[object]]


@dataclass(frozen=True)
class UdpTimeouts:
    """Durations in seconds; backend_read of 0 disables the reply timeout."""

    session_idle: float = 30.0
    backend_read: float = 0.0
    dial: float = 5.0


class _ForwardError(Exception):
    pass


def _split_hostport(addr: str) -> tuple[str, int]:
    host, sep, port = addr.rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address {addr!r}")
    return host.strip("[]"), int(port)


def _fmt(addr) -> str:
    if isinstance(addr, tuple) and len(addr) >= 2:
        return f"{addr[0]}:{addr[1]}"
    return str(addr)


async def _default_dial(addr: str, protocol_factory):
    host, port = _split_hostport(addr)
    loop = asyncio.get_running_loop()
    transport, _ = await loop.create_datagram_endpoint(protocol_factory, remote_addr=(host, port))
    return transport


class _ListenProtocol(asyncio.DatagramProtocol):
    def __init__(self, inbox: asyncio.Queue, log: logging.Logger) -> None:
        self._inbox = inbox
        self._log = log

    def datagram_received(self, data: bytes, addr) -> None:
        try:
            self._inbox.put_nowait((data, addr))
        except asyncio.QueueFull:
            self._log.debug("udp inbox full, dropping datagram", extra={"client": _fmt(addr)})

    def error_received(self, exc: Exception) -> None:
        self._log.debug("udp read error", extra={"error": repr(exc)})


class _BackendProtocol(asyncio.DatagramProtocol):
    def __init__(self) -> None:
        self.replies: asyncio.Queue = asyncio.Queue()

    def datagram_received(self, data: bytes, addr) -> None:
        if self.replies.qsize() < REPLY_QUEUE_SIZE:
            self.replies.put_nowait(data)

    def error_received(self, exc: Exception) -> None:
        self.replies.put_nowait(exc)

    def connection_lost(self, exc) -> None:
        self.replies.put_nowait(None)


class UdpProxy:
    """Listens for datagrams and relays each client's traffic through its own session.

    A custom dial is awaited as dial(addr, protocol_factory) and must return a
    datagram transport created with that factory.
    """

    def __init__(self, name: str, listen: str, balancer, timeouts: UdpTimeouts,
                 log: logging.Logger, dial: Dialer | None = None) -> None:
        self._name = name
        self._listen = listen
        self._balancer = balancer
        self._timeouts = timeouts
        self._log = log
        self._dial = dial or _default_dial
        self._start_lock = asyncio.Lock()
        self._transport: asyncio.DatagramTransport | None = None
        self._table: Table | None = None
        self._read_task: asyncio.Task | None = None
        self._supervisor: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()
        self._done: asyncio.Event | None = None
        self._started = False
        self._stopped = False

    def addr(self):
        """The bound address while listening, else None."""
        if self._transport is None:
            return None
        return self._transport.get_extra_info("sockname")

    async def start(self) -> None:
        idle = self._timeouts.session_idle
        if idle <= 0:
            raise ValueError(f"udp proxy {self._name!r}: invalid session_idle {idle}: must be > 0")
        async with self._start_lock:
            if self._stopped:
                raise ProxyStoppedError()
            if self._started:
                raise ProxyStartedError()
            try:
                host, port = _split_hostport(self._listen)
            except ValueError as exc:
                raise OSError(f"udp proxy {self._name!r}: resolve {self._listen}: {exc}") from exc
            loop = asyncio.get_running_loop()
            inbox: asyncio.Queue = asyncio.Queue(maxsize=INBOX_SIZE)
            try:
                transport, _ = await loop.create_datagram_endpoint(
                    lambda: _ListenProtocol(inbox, self._log), local_addr=(host, port)
                )
            except OSError as exc:
                raise OSError(f"udp proxy {self._name!r}: listen {self._listen}: {exc}") from exc

            gc_interval = idle / GC_DIVISOR
            if gc_interval <= 0:
                gc_interval = DEFAULT_GC_INTERVAL
            table = Table(idle, gc_interval, self._log,
                          lambda s: self._balancer.release(s.backend))
            done = asyncio.Event()
            self._transport = transport
            self._table = table
            self._done = done
            self._started = True
            self._read_task = asyncio.create_task(self._read_loop(transport, inbox, table))
            self._supervisor = asyncio.create_task(self._complete(done, self._read_task))
        self._log.info("udp proxy started", extra={"addr": _fmt(transport.get_extra_info("sockname"))})

    async def shutdown(self, timeout: float | None = None) -> None:
        """Stop listening, evict sessions and wait for workers up to timeout seconds."""
        done = self._stop()
        if done is None:
            return
        try:
            await asyncio.wait_for(done.wait(), timeout)
        except TimeoutError as exc:
            self._log.warning("udp proxy shutdown timed out, sessions still alive")
            raise TimeoutError(f"udp proxy {self._name!r}: shutdown timed out") from exc
        self._log.info("udp proxy shutdown complete")

    async def _read_loop(self, listen, inbox: asyncio.Queue, table: Table) -> None:
        try:
            while True:
                data, client = await inbox.get()
                try:
                    await self._forward(listen, table, client, data)
                except Exception as exc:  # noqa: BLE001 - one bad packet must not stop the loop
                    self._log.warning("udp forward",
                                      extra={"client": _fmt(client), "error": repr(exc)})
        except asyncio.CancelledError:
            self._log.info("udp listener closed, read loop exiting")

    async def _forward(self, listen, table: Table, client, data: bytes) -> None:
        session, replies = await self._session_for(table, client)
        if replies is not None:
            self._spawn(self._reply_loop(listen, table, session, replies))
        session.touch()
        try:
            session.backend_transport.sendto(data)
        except OSError as exc:
            table.delete(client)
            raise _ForwardError(f"udp: write backend: {exc}") from exc

    async def _session_for(self, table: Table, client) -> tuple[Session, asyncio.Queue | None]:
        existing = table.get(client)
        if existing is not None:
            return existing, None
        try:
            backend = self._balancer.pick()
        except Exception as exc:
            raise _ForwardError(f"udp: pick: {exc}") from exc

        protocol = _BackendProtocol()
        try:
            transport = await asyncio.wait_for(
                self._dial(backend.addr, lambda: protocol), self._timeouts.dial
            )
        except BaseException as exc:
            self._balancer.release(backend)
            if isinstance(exc, Exception):
                raise _ForwardError(f"udp: dial backend {backend.addr}: {exc!r}") from exc
            raise

        if not isinstance(transport, asyncio.DatagramTransport):
            close = getattr(transport, "close", None)
            if callable(close):
                close()
            self._balancer.release(backend)
            raise _ForwardError(
                f"udp: dial returned {type(transport).__name__}, want DatagramTransport"
            )

        candidate = Session(client, transport, backend)
        actual, loaded = table.load_or_store(client, candidate)
        if loaded:
            self._balancer.release(backend)
            transport.close()
            return actual, None
        return candidate, protocol.replies

    async def _reply_loop(self, listen, table: Table, session: Session,
                          replies: asyncio.Queue) -> None:
        read_timeout = self._timeouts.backend_read
        fields = {"backend": session.backend.addr, "client": _fmt(session.client_addr)}
        try:
            while True:
                try:
                    if read_timeout > 0:
                        item = await asyncio.wait_for(replies.get(), read_timeout)
                    else:
                        item = await replies.get()
                except TimeoutError:
                    self._log.debug("udp backend read", extra={**fields, "error": "timeout"})
                    return
                if item is None:
                    return
                if isinstance(item, Exception):
                    self._log.debug("udp backend read", extra={**fields, "error": repr(item)})
                    return
                session.touch()
                if listen.is_closing():
                    return
                try:
                    listen.sendto(item, session.client_addr)
                except OSError as exc:
                    self._log.debug("udp listener write", extra={**fields, "error": repr(exc)})
        finally:
            if table.get(session.client_addr) is session:
                table.delete(session.client_addr)

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _stop(self) -> asyncio.Event | None:
        if not self._started:
            return None
        done = self._done
        if not self._stopped:
            self._stopped = True
            if self._read_task is not None:
                self._read_task.cancel()
            for task in list(self._tasks):
                task.cancel()
            transport, self._transport = self._transport, None
            if transport is not None:
                transport.close()
            if self._table is not None:
                self._table.close()
        return done

    async def _complete(self, done: asyncio.Event, read_task: asyncio.Task) -> None:
        await asyncio.gather(read_task, return_exceptions=True)
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        if self._done is done:
            self._started = False
            self._transport = None
            self._table = None
            self._read_task = None
        done.set()