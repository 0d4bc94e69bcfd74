"""TCP listener that accepts connections and hands them to a handler."""

from __future__ import annotations

import asyncio
import errno
import logging
import socket

from flowgate.domain import ProxyStartedError, ProxyStoppedError

_RETRIABLE = {errno.EMFILE, errno.ENFILE, errno.ECONNABORTED}


class TcpProxy:
    """Accept loop with backoff, a concurrency limiter and graceful shutdown."""

    def __init__(self, name: str, listen: str, handler, limiter, backoff, log: logging.Logger) -> None:
        self._name = name
        self._listen = listen
        self._handler = handler
        self._limiter = limiter
        self._backoff = backoff
        self._log = log
        self._sock: socket.socket | None = None
        self._accept_task: asyncio.Task | None = None
        self._supervisor: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()
        self._done: asyncio.Event | None = None
        self._started = False
        self._stopped = False

    def addr(self):
        """The bound address while listening, else None."""
        return None if self._sock is None else self._sock.getsockname()

    async def start(self) -> None:
        if self._stopped:
            raise ProxyStoppedError()
        if self._started:
            raise ProxyStartedError()
        host, _, port = self._listen.rpartition(":")
        try:
            sock = socket.create_server((host.strip("[]"), int(port)))
        except (OSError, ValueError) as exc:
            raise OSError(f"tcp proxy: {self._name!r}: listen {self._listen}: {exc}") from exc
        sock.setblocking(False)
        done = asyncio.Event()
        self._sock = sock
        self._done = done
        self._started = True
        self._accept_task = asyncio.create_task(self._accept_loop(sock))
        self._supervisor = asyncio.create_task(self._complete(done, self._accept_task))
        self._log.info("tcp proxy started", extra={"addr": str(sock.getsockname())})

    async def shutdown(self, timeout: float | None = None) -> None:
        """Stop accepting, cancel handlers and wait for them up to timeout seconds."""
        done = self._stop()
        if done is None:
            return
        try:
            await asyncio.wait_for(done.wait(), timeout)
        except TimeoutError as exc:
            self._log.warning("tcp proxy shutdown timed out, active connections still alive")
            raise TimeoutError(f"tcp proxy {self._name!r}: shutdown timed out") from exc
        self._log.info("tcp proxy shutdown complete")

    async def _accept_loop(self, sock: socket.socket) -> None:
        loop = asyncio.get_running_loop()
        while True:
            try:
                conn, _ = await loop.sock_accept(sock)
            except asyncio.CancelledError:
                self._log.info("tcp listener closed, accept loop exiting")
                return
            except OSError as exc:
                if self._stopped or sock.fileno() == -1:
                    self._log.info("tcp listener closed, accept loop exiting")
                    return
                if exc.errno in _RETRIABLE:
                    self._log.warning("accept error, backing off",
                                      extra={"backoff": self._backoff.duration(), "error": repr(exc)})
                    try:
                        await self._backoff.wait()
                    except asyncio.CancelledError:
                        return
                    continue
                self._log.error("accept fatal error, stopping proxy", extra={"error": repr(exc)})
                loop.call_soon(self._stop)
                return
            self._backoff.reset()
            try:
                await self._limiter.acquire()
            except (Exception, asyncio.CancelledError):
                conn.close()
                return
            if self._stopped:
                self._limiter.release()
                conn.close()
                return
            task = asyncio.create_task(self._serve(conn))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _serve(self, conn: socket.socket) -> None:
        try:
            try:
                reader, writer = await asyncio.open_connection(sock=conn)
            except OSError:
                conn.close()
                return
            try:
                await self._handler.handle(reader, writer)
            except Exception as exc:  # noqa: BLE001
                self._log.error("connection handler failed", extra={"error": repr(exc)})
        finally:
            self._limiter.release()

    def _stop(self) -> asyncio.Event | None:
        if not self._started:
            return None
        done = self._done
        if not self._stopped:
            self._stopped = True
            if self._accept_task is not None:
                self._accept_task.cancel()
            for task in list(self._tasks):
                task.cancel()
            sock, self._sock = self._sock, None
            if sock is not None:
                asyncio.get_running_loop().call_soon(sock.close)
        return done

    async def _complete(self, done: asyncio.Event, accept_task: asyncio.Task) -> None:
        await asyncio.gather(accept_task, return_exceptions=True)
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        if self._done is done:
            if self._sock is not None:
                self._sock.close()
            self._started = False
            self._sock = None
            self._accept_task = None
        done.set()