"""Tests for the downstream WebSocket endpoint."""

import json

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from app.relay.core import RelayCore
from app.relay.stream import handle_client_message
from fakes import FakeSubscriber


@pytest.fixture
def core():
    return RelayCore()


@pytest.fixture
def client(core):
    return TestClient(create_app(core))


def _subscribe(ws, symbols=("BTCUSDT",)) -> dict:
    """Round-trip a subscribe request; once acked, the session is registered."""
    ws.send_text(json.dumps({"action": "subscribe", "symbols": list(symbols)}))
    return json.loads(ws.receive_text())


class TestWebSocketEndpoint:
    """End-to-end through the FastAPI app."""

    def test_subscribe_is_acknowledged(self, client):
        with client.websocket_connect("/") as ws:
            ack = _subscribe(ws, ["BTCUSDT", "ETHUSDT"])
        assert ack["type"] == "subscribed"
        assert ack["symbols"] == ["BTCUSDT", "ETHUSDT"]
        assert ack["message"] == "subscribed"

    def test_registers_and_unregisters(self, client, core):
        with client.websocket_connect("/") as ws:
            _subscribe(ws)
            assert len(core.registry) == 1
        assert len(core.registry) == 0

    def test_ws_alias_path(self, client, core):
        with client.websocket_connect("/ws") as ws:
            _subscribe(ws)
            assert len(core.registry) == 1

    def test_first_message_is_market_data(self, client, core):
        """No welcome payload: the first frame pushed is the raw upstream frame."""
        frame = '[{"e":"24hrTicker","s":"BTCUSDT","c":"42000.00"}]'
        with client.websocket_connect("/") as ws:
            _subscribe(ws)
            ws.portal.call(core.registry.broadcast, frame)
            assert ws.receive_text() == frame

    def test_malformed_json_keeps_connection(self, client):
        with client.websocket_connect("/") as ws:
            ws.send_text("{not json")
            ack = _subscribe(ws)
        assert ack["type"] == "subscribed"

    def test_heartbeat_replies_are_silent(self, client):
        """heartbeat_response and client_heartbeat get no reply."""
        with client.websocket_connect("/") as ws:
            ws.send_text(json.dumps({"type": "heartbeat_response"}))
            ws.send_text(json.dumps({"type": "client_heartbeat"}))
            # The next thing received is the subscribe ack, not a heartbeat reply.
            assert _subscribe(ws)["type"] == "subscribed"

    def test_heartbeat_sweep_reaches_socket(self, client, core):
        with client.websocket_connect("/") as ws:
            _subscribe(ws)
            ws.portal.call(core.heartbeat.sweep)
            msg = json.loads(ws.receive_text())
        assert msg["type"] == "heartbeat"


@pytest.mark.asyncio
class TestHandleClientMessage:
    """Unit tests for inbound control-message handling."""

    async def test_subscribe_ack(self):
        sub = FakeSubscriber()
        await handle_client_message(sub, '{"action":"subscribe","symbols":["BTCUSDT"]}')
        [ack] = sub.sent_json()
        assert ack["type"] == "subscribed"
        assert ack["symbols"] == ["BTCUSDT"]

    @pytest.mark.parametrize("raw", ['{"action":"subscribe"}', '{"action":"subscribe","symbols":"BTCUSDT"}'])
    async def test_subscribe_without_symbol_list_ignored(self, raw):
        sub = FakeSubscriber()
        await handle_client_message(sub, raw)
        assert sub.sent == []

    async def test_subscribe_empty_list_acknowledged(self):
        """An empty list is still a list: the request gets the usual ack."""
        sub = FakeSubscriber()
        await handle_client_message(sub, '{"action":"subscribe","symbols":[]}')
        assert sub.sent_json() == [{"type": "subscribed", "symbols": [], "message": "subscribed"}]

    @pytest.mark.parametrize("raw", ['{"type":"heartbeat_response"}', '{"type":"client_heartbeat"}', "[1,2]", "42"])
    async def test_ignored_messages(self, raw):
        sub = FakeSubscriber()
        await handle_client_message(sub, raw)
        assert sub.sent == []

    @pytest.mark.parametrize("raw", ["{oops", "", None, b"\xff\xfe"])
    async def test_malformed_is_ignored(self, raw):
        sub = FakeSubscriber()
        await handle_client_message(sub, raw)
        assert sub.sent == []
        assert sub.is_open
