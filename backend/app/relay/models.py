"""Data models for the ticker relay."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .errors import FrameDecodeError

# Stream tickers carry the symbol under "s", REST tickers under "symbol".
SYMBOL_KEYS = ("s", "symbol")


class UpstreamState(str, Enum):
    """Lifecycle of the single upstream stream connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True, slots=True)
class TickerRecord:
    """Latest known ticker for one symbol. The upstream object is kept whole."""

    symbol: str
    fields: dict[str, Any]

    @classmethod
    def from_payload(cls, payload: Any) -> TickerRecord | None:
        """Build a record from a decoded ticker object, or None if it has no symbol."""
        if not isinstance(payload, dict):
            return None
        for key in SYMBOL_KEYS:
            symbol = payload.get(key)
            if isinstance(symbol, str) and symbol:
                return cls(symbol=symbol, fields=payload)
        return None


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Fresh view of the cache handed to readers."""

    records: list[TickerRecord]
    as_of: float  # Unix seconds

    @property
    def data(self) -> list[dict[str, Any]]:
        """Raw ticker objects, in cache order."""
        return [record.fields for record in self.records]

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": iso_timestamp(self.as_of), "data": self.data}


def iso_timestamp(ts: float | None = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a trailing Z."""
    moment = datetime.fromtimestamp(ts if ts is not None else time.time(), tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def decode_ticker_batch(frame: str | bytes) -> list[TickerRecord]:
    """Decode a raw stream frame into ticker records.

    Raises FrameDecodeError if the frame is not JSON. A frame that decodes to
    something other than a list of ticker objects yields an empty list; list
    entries without a symbol are skipped.
    """
    try:
        payload = json.loads(frame)
    except (ValueError, UnicodeDecodeError) as e:
        raise FrameDecodeError(str(e)) from e

    if not isinstance(payload, list):
        return []

    records = []
    for item in payload:
        record = TickerRecord.from_payload(item)
        if record is not None:
            records.append(record)
    return records


@dataclass(frozen=True, slots=True)
class HeartbeatMessage:
    """Liveness ping pushed to every open subscriber by the sweeper."""

    server_time: int = field(default_factory=lambda: int(time.time() * 1000))  # Unix millis

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "heartbeat",
            "timestamp": iso_timestamp(self.server_time / 1000),
            "server_time": self.server_time,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass(frozen=True, slots=True)
class ServerRestartNotice:
    """Sent to subscribers once, just before the relay closes them on shutdown."""

    message: str = "Server is restarting, please reconnect"
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "server_restart",
            "message": self.message,
            "timestamp": iso_timestamp(self.timestamp),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())
