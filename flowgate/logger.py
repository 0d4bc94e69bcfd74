"""Logging setup: JSON in production, key=value text elsewhere."""

from __future__ import annotations

import json
import logging
import socket
import sys

ENV_PROD = "prod"
VERSION = "dev"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

_STANDARD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def parse_level(level: str) -> int:
    """Map a level name to a logging level; unknown names mean INFO."""
    return _LEVELS.get(level.lower(), logging.INFO)


def _instance_id() -> str:
    try:
        return socket.gethostname() or "unknown"
    except OSError:
        return "unknown"


def _fields(record: logging.LogRecord) -> dict:
    return {k: v for k, v in vars(record).items() if k not in _STANDARD_ATTRS}


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        data = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "msg": record.getMessage(),
        }
        data.update(_fields(record))
        return json.dumps(data, default=str)


class _TextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        parts = [
            f"time={self.formatTime(record)}",
            f"level={record.levelname}",
            f"msg={json.dumps(record.getMessage())}",
        ]
        parts += [f"{k}={v}" for k, v in _fields(record).items()]
        return " ".join(parts)


class _ContextFilter(logging.Filter):
    def __init__(self, instance_id: str) -> None:
        super().__init__()
        self._instance_id = instance_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.version = VERSION
        record.instance_id = self._instance_id
        return True


def setup(env: str, level: str) -> logging.Logger:
    """Configure and return the application logger writing to stdout."""
    log = logging.getLogger("flowgate")
    for h in list(log.handlers):
        log.removeHandler(h)
    for f in list(log.filters):
        log.removeFilter(f)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if env == ENV_PROD else _TextFormatter())
    log.addHandler(handler)
    log.addFilter(_ContextFilter(_instance_id()))
    log.setLevel(parse_level(level))
    log.propagate = False
    return log