"""Relay settings and fixed upstream endpoints."""

from __future__ import annotations

import os
from dataclasses import dataclass

# Upstream endpoints are fixed; only the listening port comes from the environment.
BINANCE_STREAM_URL = "wss://stream.binance.com:9443/ws/!ticker@arr"
BINANCE_REST_BASE_URL = "https://api.binance.com"

QUOTE_SUFFIX = "USDT"

RECONNECT_DELAY = 5.0  # seconds, constant across attempts
HEARTBEAT_INTERVAL = 30.0
STALENESS_WINDOW = 300.0
SHUTDOWN_DEADLINE = 10.0
SEND_TIMEOUT = 5.0
REST_TIMEOUT = 10.0
MAX_FRAME_SIZE = 8 * 1024 * 1024  # all-market ticker arrays exceed the 1 MiB websockets default

DEFAULT_PORT = 3000
DEFAULT_HOST = "0.0.0.0"

# Names both logging and uvicorn understand, plus the aliases folded into them.
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")
LOG_LEVEL_ALIASES = {"WARN": "WARNING", "FATAL": "CRITICAL"}


@dataclass(frozen=True, slots=True)
class RelaySettings:
    """Runtime settings for one relay instance."""

    port: int = DEFAULT_PORT
    host: str = DEFAULT_HOST
    log_level: str = "INFO"
    stream_url: str = BINANCE_STREAM_URL
    rest_base_url: str = BINANCE_REST_BASE_URL
    quote_suffix: str = QUOTE_SUFFIX
    reconnect_delay: float = RECONNECT_DELAY
    heartbeat_interval: float = HEARTBEAT_INTERVAL
    staleness_window: float = STALENESS_WINDOW
    shutdown_deadline: float = SHUTDOWN_DEADLINE
    send_timeout: float = SEND_TIMEOUT
    rest_timeout: float = REST_TIMEOUT

    @classmethod
    def from_env(cls) -> RelaySettings:
        """Build settings from PORT, HOST and LOG_LEVEL.

        Empty or whitespace-only values fall back to the defaults. A PORT that
        is not an integer in 1..65535, or an unknown LOG_LEVEL, raises ValueError.
        """
        raw_port = os.environ.get("PORT", "").strip()
        host = os.environ.get("HOST", "").strip() or DEFAULT_HOST
        log_level = os.environ.get("LOG_LEVEL", "").strip().upper() or "INFO"
        log_level = LOG_LEVEL_ALIASES.get(log_level, log_level)
        if log_level not in LOG_LEVELS:
            raise ValueError(f"Unknown LOG_LEVEL: {log_level}")

        port = DEFAULT_PORT
        if raw_port:
            port = int(raw_port)
            if not 0 < port < 65536:
                raise ValueError(f"PORT out of range: {port}")

        return cls(port=port, host=host, log_level=log_level)
