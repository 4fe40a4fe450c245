"""Process entry point: FastAPI app, uvicorn server, signal-driven shutdown."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from types import FrameType

import uvicorn
from fastapi import FastAPI

from .relay import RelayCore, ShutdownCoordinator, create_http_router, create_relay_core, create_stream_router
from .relay.config import RelaySettings
from .relay.routes import cors_middleware, install_error_handlers

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def create_app(core: RelayCore) -> FastAPI:
    """Build the FastAPI app around a relay core.

    The lifespan starts the core with the server and stops it on the way out.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await core.start()
        try:
            yield
        finally:
            await core.stop()

    app = FastAPI(title="Ticker Relay", lifespan=lifespan)
    app.state.core = core
    app.middleware("http")(cors_middleware)
    install_error_handlers(app)
    app.include_router(create_http_router(core))
    app.include_router(create_stream_router(core))
    return app


class RelayServer(uvicorn.Server):
    """uvicorn server whose SIGTERM/SIGINT go to the ShutdownCoordinator."""

    def __init__(self, config: uvicorn.Config) -> None:
        super().__init__(config)
        self.coordinator: ShutdownCoordinator | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    async def serve(self, sockets=None) -> None:
        self._loop = asyncio.get_running_loop()
        await super().serve(sockets=sockets)

    def handle_exit(self, sig: int, frame: FrameType | None) -> None:
        if self.coordinator is None or self._loop is None:
            super().handle_exit(sig, frame)
            return
        self._loop.call_soon_threadsafe(self.coordinator.request, signal.Signals(sig).name)


async def run(settings: RelaySettings) -> int:
    """Serve until a termination signal has been handled. Returns the exit status."""
    core = create_relay_core(settings)
    app = create_app(core)
    server = RelayServer(
        uvicorn.Config(
            app,
            host=settings.host,
            port=settings.port,
            log_config=None,
            log_level=settings.log_level.lower(),
        )
    )
    stopped = asyncio.Event()

    async def close_listener() -> None:
        server.should_exit = True
        await stopped.wait()

    server.coordinator = ShutdownCoordinator(
        core.registry,
        core.upstream,
        close_listener,
        deadline=settings.shutdown_deadline,
        send_timeout=settings.send_timeout,
    )

    logger.info("Ticker relay listening on %s:%d", settings.host, settings.port)
    try:
        await server.serve()
    finally:
        stopped.set()

    task = server.coordinator.task
    if task is None:
        return 0
    return await task


def main() -> None:
    settings = RelaySettings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format=LOG_FORMAT,
    )
    sys.exit(asyncio.run(run(settings)))


if __name__ == "__main__":
    main()
