"""Tests for the process entry point wiring."""

import asyncio
import signal
from unittest.mock import MagicMock

import pytest
import uvicorn
from fastapi.testclient import TestClient

from app.main import RelayServer, create_app
from app.relay.core import RelayCore


def _server() -> RelayServer:
    return RelayServer(uvicorn.Config(create_app(RelayCore()), log_config=None))


class TestCreateApp:
    """Tests for create_app."""

    def test_routes_registered(self):
        app = create_app(RelayCore())
        assert app.url_path_for("health") in {"/", "/health"}
        assert app.url_path_for("cached_tickers") == "/api/cache"
        assert app.url_path_for("klines") == "/api/klines"
        assert app.url_path_for("relay_stream") == "/ws"

    @pytest.mark.parametrize("path", ["/", "/health"])
    def test_health_served_at_both_paths(self, path):
        client = TestClient(create_app(RelayCore()))
        assert client.get(path).status_code == 200

    def test_core_on_app_state(self):
        core = RelayCore()
        assert create_app(core).state.core is core


@pytest.mark.asyncio
class TestRelayServerSignals:
    """SIGTERM/SIGINT go to the shutdown coordinator."""

    async def test_signal_routed_to_coordinator(self):
        server = _server()
        server._loop = asyncio.get_running_loop()
        server.coordinator = MagicMock()

        server.handle_exit(signal.SIGTERM, None)
        await asyncio.sleep(0)

        server.coordinator.request.assert_called_once_with("SIGTERM")
        assert not server.should_exit

    async def test_repeat_signal_reaches_coordinator_each_time(self):
        """De-duplication is the coordinator's job, not the server's."""
        server = _server()
        server._loop = asyncio.get_running_loop()
        server.coordinator = MagicMock()

        server.handle_exit(signal.SIGTERM, None)
        server.handle_exit(signal.SIGINT, None)
        await asyncio.sleep(0)

        assert server.coordinator.request.call_count == 2

    async def test_without_coordinator_falls_back_to_uvicorn(self):
        server = _server()
        server.handle_exit(signal.SIGTERM, None)
        assert server.should_exit
