"""RelayCore: the one object that owns all relay state."""

from __future__ import annotations

import logging
import time

from .cache import SnapshotCache
from .config import RelaySettings
from .heartbeat import HeartbeatSweeper
from .registry import ConnectionRegistry
from .rest_client import BinanceRestClient
from .upstream import UpstreamFeed

logger = logging.getLogger(__name__)


class RelayCore:
    """Cache, subscriber registry, upstream feed and heartbeat, wired together.

    Nothing here is module-global, so several independent relays can live in
    one process (the test suite relies on that).

    Lifecycle:
        core = create_relay_core()
        await core.start()
        # ... serve ...
        await core.stop()
    """

    def __init__(
        self,
        settings: RelaySettings | None = None,
        *,
        cache: SnapshotCache | None = None,
        registry: ConnectionRegistry | None = None,
        rest_client: BinanceRestClient | None = None,
        upstream: UpstreamFeed | None = None,
        heartbeat: HeartbeatSweeper | None = None,
    ) -> None:
        self.settings = settings or RelaySettings()
        s = self.settings
        self.cache = cache or SnapshotCache(staleness_window=s.staleness_window)
        self.registry = registry or ConnectionRegistry(send_timeout=s.send_timeout)
        self.rest_client = rest_client or BinanceRestClient(base_url=s.rest_base_url, timeout=s.rest_timeout)
        self.upstream = upstream or UpstreamFeed(
            cache=self.cache,
            registry=self.registry,
            rest_client=self.rest_client,
            url=s.stream_url,
            quote_suffix=s.quote_suffix,
            reconnect_delay=s.reconnect_delay,
        )
        self.heartbeat = heartbeat or HeartbeatSweeper(self.registry, interval=s.heartbeat_interval)
        self.started_at = time.time()

    async def start(self) -> None:
        self.started_at = time.time()
        await self.upstream.start()
        await self.heartbeat.start()
        logger.info("Relay core started")

    async def stop(self) -> None:
        """Stop background tasks and release the REST client. Safe to call twice."""
        await self.heartbeat.stop()
        await self.upstream.stop()
        await self.rest_client.close()
        logger.info("Relay core stopped")

    @property
    def uptime(self) -> float:
        """Seconds since start()."""
        return time.time() - self.started_at
