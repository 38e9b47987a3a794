from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .transport.socket_transport import DEFAULT_HOST, DEFAULT_PORT, DEFAULT_TIMEOUT_MS

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    host: str
    port: int
    timeout_ms: int
    password: str | None
    easy: bool
    log_level: str


def load_settings() -> Settings:
    load_dotenv(override=False)

    host = os.getenv("SSDB_HOST", DEFAULT_HOST)
    port = int(os.getenv("SSDB_PORT", str(DEFAULT_PORT)))
    timeout_ms = int(os.getenv("SSDB_TIMEOUT_MS", str(DEFAULT_TIMEOUT_MS)))
    password = os.getenv("SSDB_PASSWORD") or None
    easy = os.getenv("SSDB_EASY", "false").strip().lower() in _TRUE_VALUES
    log_level = os.getenv("SSDB_LOG_LEVEL", "INFO")

    return Settings(
        host=host,
        port=port,
        timeout_ms=timeout_ms,
        password=password,
        easy=easy,
        log_level=log_level,
    )
