"""One-shot graceful shutdown with a hard deadline."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable

from .config import SEND_TIMEOUT, SHUTDOWN_DEADLINE
from .interface import Subscriber
from .models import ServerRestartNotice
from .registry import ConnectionRegistry
from .upstream import UpstreamFeed

logger = logging.getLogger(__name__)


class ShutdownCoordinator:
    """Runs the shutdown sequence at most once per process.

    Sequence, bounded by `deadline` seconds:
      1. every open subscriber gets a server_restart notice (best effort,
         concurrently, each send bounded by send_timeout) and is closed
         whether or not the notice went out
      2. the upstream connection is closed if open
      3. the listener is closed and we wait for it to confirm

    run() returns exit status 0 on a clean finish. If the deadline passes
    first, force_exit(1) is called (os._exit by default) so hung sockets
    can never keep the process alive.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        upstream: UpstreamFeed,
        close_listener: Callable[[], Awaitable[None]],
        deadline: float = SHUTDOWN_DEADLINE,
        send_timeout: float = SEND_TIMEOUT,
        force_exit: Callable[[int], None] = os._exit,
    ) -> None:
        self._registry = registry
        self._upstream = upstream
        self._close_listener = close_listener
        self._deadline = deadline
        self._send_timeout = send_timeout
        self._force_exit = force_exit
        self._triggered = False
        self._task: asyncio.Task | None = None

    @property
    def triggered(self) -> bool:
        return self._triggered

    @property
    def task(self) -> asyncio.Task | None:
        return self._task

    def request(self, reason: str = "SIGTERM") -> asyncio.Task | None:
        """Start shutting down. Repeat requests are ignored.

        Must be called on the event loop thread. Returns the shutdown task on
        the first call and None afterwards.
        """
        if self._triggered:
            logger.warning("Already shutting down, ignoring repeated %s", reason)
            return None
        self._triggered = True
        logger.warning("Received %s, shutting down", reason)
        self._task = asyncio.create_task(self.run(), name="shutdown")
        return self._task

    async def run(self) -> int:
        try:
            await asyncio.wait_for(self._graceful(), timeout=self._deadline)
        except asyncio.TimeoutError:
            logger.error("Graceful shutdown exceeded %.1fs, forcing exit", self._deadline)
            for handler in logging.getLogger().handlers:
                handler.flush()
            self._force_exit(1)
            return 1
        logger.info("Shutdown complete")
        return 0

    async def _graceful(self) -> None:
        notified = await self._notify_and_close_subscribers()
        logger.info("Notified %d subscribers of restart", notified)

        await self._upstream.close_connection()

        await self._close_listener()
        logger.info("Listener closed")

    async def _notify_and_close_subscribers(self) -> int:
        notice = ServerRestartNotice().to_json()
        targets = [sub for sub in self._registry if sub.is_open]
        if not targets:
            return 0
        results = await asyncio.gather(
            *(self._notify_and_close(sub, notice) for sub in targets),
            return_exceptions=True,
        )
        return sum(1 for result in results if result is True)

    async def _notify_and_close(self, subscriber: Subscriber, notice: str) -> bool:
        """Best-effort notice, then close regardless. Each step is bounded by send_timeout."""
        notified = False
        try:
            await asyncio.wait_for(subscriber.send(notice), timeout=self._send_timeout)
            notified = True
        except asyncio.TimeoutError:
            logger.debug("Restart notice to %s timed out", subscriber.remote)
        except Exception as e:
            logger.debug("Restart notice to %s failed: %s", subscriber.remote, e)
        try:
            await asyncio.wait_for(subscriber.close(code=1012, reason="server restart"), timeout=self._send_timeout)
        except asyncio.TimeoutError:
            logger.debug("Closing %s timed out", subscriber.remote)
        except Exception as e:
            logger.debug("Closing %s failed: %s", subscriber.remote, e)
        self._registry.unregister(subscriber)
        return notified
