"""Configuration loaded from a YAML file with environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from dotenv import load_dotenv


@dataclass
class BackendConfig:
    addr: str = ""
    weight: int = 0


@dataclass
class Config:
    env: str = "dev"
    log_level: str = "info"
    backends: list[BackendConfig] = field(default_factory=list)


def load_config(env_file: str | os.PathLike = ".env") -> Config:
    """Load the dotenv file if present, then read the file named by CONFIG_PATH.

    ENV and LOG_LEVEL in the environment override the file.
    """
    if Path(env_file).exists():
        load_dotenv(env_file)
    cfg_path = os.environ.get("CONFIG_PATH", "")
    if not cfg_path:
        raise RuntimeError("CONFIG_PATH is not set")
    try:
        with open(cfg_path, encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise RuntimeError(f"failed to read config: {exc}") from exc
    if not isinstance(data, dict):
        raise RuntimeError("failed to read config: top level must be a mapping")

    backends = [
        BackendConfig(addr=str(b.get("addr", "")), weight=int(b.get("weight", 0) or 0))
        for b in data.get("backends") or []
    ]
    env = os.environ.get("ENV") or data.get("env") or "dev"
    level = os.environ.get("LOG_LEVEL") or data.get("log_level") or "info"
    return Config(env=str(env), log_level=str(level), backends=backends)