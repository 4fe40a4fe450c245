"""Downstream WebSocket endpoint: subscribers connect here for the raw feed."""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket
from starlette.websockets import WebSocketDisconnect, WebSocketState

from .core import RelayCore
from .errors import DownstreamSendError
from .interface import Subscriber

logger = logging.getLogger(__name__)

CLIENT_HEARTBEAT_TYPES = frozenset({"heartbeat_response", "client_heartbeat"})


class WebSocketSubscriber(Subscriber):
    """Subscriber backed by a Starlette/FastAPI WebSocket."""

    def __init__(self, websocket: WebSocket) -> None:
        self._ws = websocket
        client = websocket.client
        self._remote = f"{client.host}:{client.port}" if client else "unknown"

    @property
    def is_open(self) -> bool:
        return (
            self._ws.client_state is WebSocketState.CONNECTED
            and self._ws.application_state is WebSocketState.CONNECTED
        )

    @property
    def remote(self) -> str:
        return self._remote

    async def send(self, frame: str | bytes) -> None:
        try:
            if isinstance(frame, bytes):
                await self._ws.send_bytes(frame)
            else:
                await self._ws.send_text(frame)
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            raise DownstreamSendError(self._remote, e) from e

    async def close(self, code: int = 1001, reason: str = "") -> None:
        if self._ws.application_state is WebSocketState.DISCONNECTED:
            return
        try:
            await self._ws.close(code=code, reason=reason)
        except (RuntimeError, OSError) as e:
            logger.debug("Close of %s failed: %s", self._remote, e)


async def handle_client_message(subscriber: Subscriber, raw: str | bytes | None) -> None:
    """React to one inbound control message.

    Recognized:
        {"action": "subscribe", "symbols": [...]}  -> "subscribed" ack, no filtering
        {"type": "heartbeat_response"}             -> ignored
        {"type": "client_heartbeat"}               -> ignored
    Malformed JSON is logged; the session stays open.
    """
    logger.debug("Message from %s: %r", subscriber.remote, raw)
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.warning("Malformed message from %s: %s", subscriber.remote, e)
        return

    if not isinstance(data, dict):
        return

    if data.get("type") in CLIENT_HEARTBEAT_TYPES:
        logger.debug("Heartbeat reply from %s", subscriber.remote)
        return

    symbols = data.get("symbols")
    if data.get("action") == "subscribe" and isinstance(symbols, list):
        logger.info(
            "Subscribe request from %s: %s", subscriber.remote, ", ".join(map(str, symbols)) or "(no symbols)"
        )
        await subscriber.send(json.dumps({"type": "subscribed", "symbols": symbols, "message": "subscribed"}))


def create_stream_router(core: RelayCore) -> APIRouter:
    """Create the downstream WebSocket router bound to a relay core.

    The factory injects the core without module globals.
    """
    router = APIRouter(tags=["streaming"])

    async def relay_stream(websocket: WebSocket) -> None:
        """Register the session and forward upstream frames until it closes.

        No welcome message: the first thing a subscriber receives is real
        market data.
        """
        await websocket.accept()
        subscriber = WebSocketSubscriber(websocket)
        core.registry.register(subscriber)
        logger.info("Subscriber connected: %s (total %d)", subscriber.remote, len(core.registry))

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                await handle_client_message(subscriber, message.get("text") or message.get("bytes"))
        except (WebSocketDisconnect, DownstreamSendError) as e:
            logger.debug("Subscriber %s dropped: %s", subscriber.remote, e)
        except RuntimeError as e:
            logger.warning("Subscriber %s error: %s", subscriber.remote, e)
        finally:
            core.registry.unregister(subscriber)
            logger.info("Subscriber disconnected: %s (total %d)", subscriber.remote, len(core.registry))

    router.add_api_websocket_route("/", relay_stream)
    router.add_api_websocket_route("/ws", relay_stream)
    return router
