"""Tests for relay data models and frame decoding."""

import json

import pytest

from app.relay.errors import FrameDecodeError
from app.relay.models import (
    HeartbeatMessage,
    ServerRestartNotice,
    Snapshot,
    TickerRecord,
    decode_ticker_batch,
    iso_timestamp,
)


class TestTickerRecord:
    """Unit tests for TickerRecord."""

    def test_from_stream_payload(self):
        """Stream tickers carry the symbol under 's'."""
        record = TickerRecord.from_payload({"s": "BTCUSDT", "c": "1"})
        assert record.symbol == "BTCUSDT"
        assert record.fields == {"s": "BTCUSDT", "c": "1"}

    def test_from_rest_payload(self):
        """REST tickers carry the symbol under 'symbol'."""
        record = TickerRecord.from_payload({"symbol": "ETHUSDT", "lastPrice": "10"})
        assert record.symbol == "ETHUSDT"

    @pytest.mark.parametrize("payload", [None, 42, "BTCUSDT", [], {}, {"s": ""}, {"s": 7}])
    def test_non_ticker_payload(self, payload):
        """Anything without a string symbol is not ticker-like."""
        assert TickerRecord.from_payload(payload) is None

    def test_immutable(self):
        """Records are frozen."""
        record = TickerRecord("BTCUSDT", {})
        with pytest.raises(AttributeError):
            record.symbol = "ETHUSDT"  # type: ignore[misc]


class TestDecodeTickerBatch:
    """Unit tests for decode_ticker_batch."""

    def test_decodes_array(self):
        frame = json.dumps([{"s": "BTCUSDT"}, {"s": "ETHUSDT"}])
        assert [r.symbol for r in decode_ticker_batch(frame)] == ["BTCUSDT", "ETHUSDT"]

    def test_decodes_bytes(self):
        frame = json.dumps([{"s": "BTCUSDT"}]).encode()
        assert len(decode_ticker_batch(frame)) == 1

    def test_skips_entries_without_symbol(self):
        frame = json.dumps([{"s": "BTCUSDT"}, {"foo": 1}, 3])
        assert [r.symbol for r in decode_ticker_batch(frame)] == ["BTCUSDT"]

    def test_non_array_json_yields_nothing(self):
        assert decode_ticker_batch('{"s": "BTCUSDT"}') == []

    def test_invalid_json_raises(self):
        with pytest.raises(FrameDecodeError):
            decode_ticker_batch("not json{")


class TestMessages:
    """Tests for relay-generated payloads."""

    def test_heartbeat_shape(self):
        msg = HeartbeatMessage(server_time=1_700_000_000_000).to_dict()
        assert msg == {
            "type": "heartbeat",
            "timestamp": "2023-11-14T22:13:20.000Z",
            "server_time": 1_700_000_000_000,
        }

    def test_server_restart_shape(self):
        msg = json.loads(ServerRestartNotice(timestamp=0.0).to_json())
        assert msg["type"] == "server_restart"
        assert msg["timestamp"] == "1970-01-01T00:00:00.000Z"
        assert msg["message"]

    def test_snapshot_to_dict(self):
        snap = Snapshot(records=[TickerRecord("A", {"s": "A"})], as_of=0.0)
        assert snap.to_dict() == {"timestamp": "1970-01-01T00:00:00.000Z", "data": [{"s": "A"}]}

    def test_iso_timestamp_has_z_suffix(self):
        assert iso_timestamp().endswith("Z")
