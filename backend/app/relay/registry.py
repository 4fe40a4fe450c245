"""Downstream connection registry and broadcaster."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator

from .config import SEND_TIMEOUT
from .interface import Subscriber

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Set of live downstream subscribers, and fan-out over it.

    Shared by the stream endpoint (register/unregister), UpstreamFeed
    (broadcast), HeartbeatSweeper (prune/send_all) and ShutdownCoordinator.
    Any of them may remove entries. No lock: all access happens on the
    event loop, and membership is re-checked against the live set after
    every suspension point.
    """

    def __init__(self, send_timeout: float = SEND_TIMEOUT) -> None:
        self._subscribers: set[Subscriber] = set()
        self._send_timeout = send_timeout

    def register(self, subscriber: Subscriber) -> None:
        """Add a newly accepted session. No welcome payload is sent."""
        self._subscribers.add(subscriber)

    def unregister(self, subscriber: Subscriber) -> None:
        """Remove a session. No-op if it is already gone."""
        self._subscribers.discard(subscriber)

    async def broadcast(self, frame: str | bytes) -> int:
        """Forward one raw upstream frame to every open subscriber.

        The same object is handed to each send, so every subscriber gets the
        identical payload. A failed send drops only that subscriber. Returns
        the number of successful deliveries; never raises.
        """
        return await self._fan_out(frame)

    async def send_all(self, payload: str) -> int:
        """Send a relay-generated message (heartbeat) to every open subscriber."""
        return await self._fan_out(payload)

    def prune(self) -> int:
        """Remove every subscriber that is no longer open. Returns how many."""
        dead = [sub for sub in self._subscribers if not sub.is_open]
        for sub in dead:
            self._subscribers.discard(sub)
        return len(dead)

    def open_subscribers(self) -> list[Subscriber]:
        return [sub for sub in self._subscribers if sub.is_open]

    async def _fan_out(self, frame: str | bytes) -> int:
        targets = self.open_subscribers()
        if not targets:
            return 0

        results = await asyncio.gather(
            *(self._send_one(sub, frame) for sub in targets),
            return_exceptions=True,
        )
        delivered = 0
        for sub, result in zip(targets, results):
            if result is True:
                delivered += 1
            elif isinstance(result, BaseException):
                # _send_one swallows send errors; anything here is unexpected
                logger.error("Broadcast to %s raised: %r", sub.remote, result)
                self._subscribers.discard(sub)
        return delivered

    async def _send_one(self, subscriber: Subscriber, frame: str | bytes) -> bool:
        # Removed or closed while an earlier send was in flight: skip quietly.
        if subscriber not in self._subscribers or not subscriber.is_open:
            return False
        try:
            await asyncio.wait_for(subscriber.send(frame), timeout=self._send_timeout)
        except asyncio.TimeoutError:
            logger.warning("Send to %s timed out after %.1fs, dropping", subscriber.remote, self._send_timeout)
            self._subscribers.discard(subscriber)
            return False
        except Exception as e:
            logger.warning("Send to %s failed, dropping: %s", subscriber.remote, e)
            self._subscribers.discard(subscriber)
            return False
        return True

    def __len__(self) -> int:
        return len(self._subscribers)

    def __contains__(self, subscriber: object) -> bool:
        return subscriber in self._subscribers

    def __iter__(self) -> Iterator[Subscriber]:
        return iter(list(self._subscribers))
