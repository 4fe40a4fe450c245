"""Ticker relay subsystem.

Public API:
    RelaySettings        - Env-driven settings (PORT, HOST, LOG_LEVEL)
    RelayCore            - Owns cache, registry, upstream feed and heartbeat
    create_relay_core    - Factory that builds an unstarted core
    SnapshotCache        - Latest ticker per symbol, freshness checked on read
    ConnectionRegistry   - Downstream subscriber set and fan-out
    UpstreamFeed         - Upstream stream connection with fixed-delay reconnect
    HeartbeatSweeper     - Periodic prune + ping of subscribers
    ShutdownCoordinator  - One-shot graceful shutdown with a hard deadline
    Subscriber           - Abstract downstream connection
    TickerRecord         - One symbol's latest upstream ticker object
    create_http_router   - FastAPI router for /health, /api/cache, /api/klines
    create_stream_router - FastAPI router for the downstream WebSocket
"""

from .cache import SnapshotCache
from .config import RelaySettings
from .core import RelayCore
from .factory import create_relay_core
from .heartbeat import HeartbeatSweeper
from .interface import Subscriber
from .models import TickerRecord, UpstreamState
from .registry import ConnectionRegistry
from .routes import create_http_router
from .shutdown import ShutdownCoordinator
from .stream import create_stream_router
from .upstream import UpstreamFeed

__all__ = [
    "RelaySettings",
    "RelayCore",
    "create_relay_core",
    "SnapshotCache",
    "ConnectionRegistry",
    "UpstreamFeed",
    "UpstreamState",
    "HeartbeatSweeper",
    "ShutdownCoordinator",
    "Subscriber",
    "TickerRecord",
    "create_http_router",
    "create_stream_router",
]
