"""Periodic prune-and-ping sweep over the downstream connections."""

from __future__ import annotations

import asyncio
import logging

from .config import HEARTBEAT_INTERVAL
from .models import HeartbeatMessage
from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class HeartbeatSweeper:
    """Every `interval` seconds: drop dead subscribers, then ping the rest.

    No acknowledgement is expected. The ping exists so that proxies and the
    transport see traffic on otherwise quiet sessions.
    """

    def __init__(self, registry: ConnectionRegistry, interval: float = HEARTBEAT_INTERVAL) -> None:
        self._registry = registry
        self._interval = interval
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        if self._task and not self._task.done():
            return
        self._task = asyncio.create_task(self._run_loop(), name="heartbeat")
        logger.info("Heartbeat sweeper started: %.1fs interval", self._interval)

    async def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("Heartbeat sweeper stopped")

    async def sweep(self) -> tuple[int, int]:
        """Run one prune pass and one ping pass. Returns (pruned, pinged)."""
        pruned = self._registry.prune()
        if pruned:
            logger.info("Pruned %d disconnected subscribers", pruned)

        sent = await self._registry.send_all(HeartbeatMessage().to_json())
        if len(self._registry):
            logger.info("Heartbeat: %d subscribers, %d pinged", len(self._registry), sent)
        return pruned, sent

    async def _run_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Heartbeat sweep failed")
