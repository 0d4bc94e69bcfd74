"""Small helpers for TCP stream writers: keepalive, half-close and close errors."""

from __future__ import annotations

import socket

_BENIGN = (EOFError, BrokenPipeError)
_INET = (socket.AF_INET, socket.AF_INET6)


def set_keepalive(writer, period: float) -> None:
    """Turn on TCP keepalive for the writer's socket; other transports are left alone."""
    sock = writer.get_extra_info("socket")
    if sock is None or sock.family not in _INET or sock.type != socket.SOCK_STREAM:
        return
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
    except OSError as exc:
        raise OSError(f"tcp: set keepalive: {exc}") from exc
    if period <= 0:
        return
    seconds = max(1, int(period))
    names = ("TCP_KEEPIDLE", "TCP_KEEPINTVL") if hasattr(socket, "TCP_KEEPIDLE") else ("TCP_KEEPALIVE",)
    try:
        for name in names:
            option = getattr(socket, name, None)
            if option is not None:
                sock.setsockopt(socket.IPPROTO_TCP, option, seconds)
    except OSError as exc:
        raise OSError(f"tcp: set keepalive period: {exc}") from exc


def close_write(writer) -> None:
    """Half-close the write side, or close fully when half-close is unsupported."""
    if writer.can_write_eof():
        try:
            writer.write_eof()
        except OSError as exc:
            raise OSError(f"tcp: close write: {exc}") from exc
        return
    writer.close()


def is_benign_close(exc: BaseException | None) -> bool:
    """True for no error and for errors that only mean the peer went away."""
    while exc is not None:
        if isinstance(exc, _BENIGN):
            return True
        if isinstance(exc, BaseExceptionGroup):
            return any(is_benign_close(e) for e in exc.exceptions)
        exc = exc.__cause__
    return exc is None and False or False if exc is not None else _nothing_seen(exc)


def _nothing_seen(exc: BaseException | None) -> bool:
    return exc is None