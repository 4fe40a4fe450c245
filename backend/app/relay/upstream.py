"""Upstream Binance ticker stream: connect, ingest, reconnect forever."""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable
from typing import Any

import websockets
from websockets.exceptions import WebSocketException

from .cache import SnapshotCache
from .config import BINANCE_STREAM_URL, MAX_FRAME_SIZE, QUOTE_SUFFIX, RECONNECT_DELAY
from .errors import FrameDecodeError, UpstreamQueryError, UpstreamTransportError
from .models import UpstreamState, decode_ticker_batch
from .registry import ConnectionRegistry
from .rest_client import BinanceRestClient

logger = logging.getLogger(__name__)


class UpstreamFeed:
    """Owns the single connection to the exchange's all-market ticker stream.

    Every frame is merged into the SnapshotCache (when it decodes) and then
    handed unchanged to the ConnectionRegistry for fan-out. Frames are
    handled strictly in arrival order.

    State machine:
        DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED
    After any close, whatever the cause, the loop sleeps reconnect_delay and
    connects again, forever. The delay never grows. The loop is sequential,
    so at most one reconnect is ever pending.
    """

    def __init__(
        self,
        cache: SnapshotCache,
        registry: ConnectionRegistry,
        rest_client: BinanceRestClient | None = None,
        url: str = BINANCE_STREAM_URL,
        quote_suffix: str = QUOTE_SUFFIX,
        reconnect_delay: float = RECONNECT_DELAY,
        connect: Callable[[str], Any] | None = None,
    ) -> None:
        self._cache = cache
        self._registry = registry
        self._rest = rest_client
        self._url = url
        self._quote_suffix = quote_suffix
        self._reconnect_delay = reconnect_delay
        self._connect = connect or functools.partial(websockets.connect, max_size=MAX_FRAME_SIZE)

        self._state = UpstreamState.DISCONNECTED
        self._ws: Any = None  # live connection, recreated on every attempt
        self._task: asyncio.Task | None = None
        self._bootstrap_task: asyncio.Task | None = None
        self._bootstrapped = False
        self._attempts = 0
        self._frames_this_connection = 0

    async def start(self) -> None:
        if self._task and not self._task.done():
            return
        self._task = asyncio.create_task(self._run_loop(), name="upstream-feed")
        logger.info("Upstream feed started: %s", self._url)

    async def stop(self) -> None:
        for task in (self._task, self._bootstrap_task):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._task = None
        self._bootstrap_task = None
        await self.close_connection()
        self._state = UpstreamState.DISCONNECTED
        logger.info("Upstream feed stopped")

    async def close_connection(self) -> None:
        """Close the live upstream socket, if any. The loop is left running."""
        ws = self._ws
        if ws is not None and self._state is UpstreamState.CONNECTED:
            await ws.close()
            logger.info("Upstream connection closed")

    async def handle_frame(self, frame: str | bytes) -> None:
        """Process one upstream frame: merge into the cache, then fan out.

        A frame that does not decode still goes out to every subscriber.
        """
        self._frames_this_connection += 1
        first = self._frames_this_connection == 1

        try:
            records = decode_ticker_batch(frame)
        except FrameDecodeError as e:
            if first:
                logger.info("First upstream frame: undecodable, raw length %d", len(frame))
            else:
                logger.debug("Undecodable upstream frame (%d bytes): %s", len(frame), e)
        else:
            if first:
                logger.info("First upstream frame: %d tickers", len(records))
            if records:
                self._cache.merge(records)

        await self._registry.broadcast(frame)

    @property
    def state(self) -> UpstreamState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is UpstreamState.CONNECTED

    @property
    def bootstrapped(self) -> bool:
        return self._bootstrapped

    @property
    def connect_attempts(self) -> int:
        return self._attempts

    # --- Internal ---

    async def _run_loop(self) -> None:
        while True:
            try:
                await self._connect_and_stream()
            except UpstreamTransportError as e:
                logger.warning("Upstream stream error: %s", e)
            except Exception:
                logger.exception("Upstream stream failed unexpectedly")
            logger.info("Reconnecting to upstream in %.1fs", self._reconnect_delay)
            await asyncio.sleep(self._reconnect_delay)

    async def _connect_and_stream(self) -> None:
        """One connection attempt, from connect to close."""
        self._state = UpstreamState.CONNECTING
        self._attempts += 1
        logger.info("Connecting to upstream stream %s (attempt %d)", self._url, self._attempts)
        try:
            async with self._connect(self._url) as ws:
                self._ws = ws
                self._state = UpstreamState.CONNECTED
                self._frames_this_connection = 0
                logger.info("Connected to upstream stream")
                self._maybe_bootstrap()

                async for frame in ws:
                    await self.handle_frame(frame)

                logger.warning(
                    "Upstream stream closed: code=%s reason=%s",
                    getattr(ws, "close_code", None),
                    getattr(ws, "close_reason", None) or "none",
                )
        except (WebSocketException, OSError, asyncio.TimeoutError) as e:
            raise UpstreamTransportError(f"{self._url}: {e}") from e
        finally:
            self._ws = None
            self._state = UpstreamState.DISCONNECTED

    def _maybe_bootstrap(self) -> None:
        if self._rest is None or self._bootstrapped:
            return
        if self._bootstrap_task and not self._bootstrap_task.done():
            return
        self._bootstrap_task = asyncio.create_task(self._bootstrap(), name="cache-bootstrap")

    async def _bootstrap(self) -> None:
        """Seed the cache with the full symbol universe. Failure is non-fatal."""
        try:
            records = await self._rest.fetch_ticker_snapshot(self._quote_suffix)
        except UpstreamQueryError as e:
            logger.warning("Cache bootstrap failed (%s), continuing with stream data: %s", e.endpoint, e)
            return
        except Exception:
            logger.exception("Cache bootstrap failed unexpectedly")
            return

        inserted = self._cache.seed(records)
        self._bootstrapped = True
        logger.info(
            "Cache bootstrapped: %d %s symbols fetched, %d inserted",
            len(records),
            self._quote_suffix,
            inserted,
        )
