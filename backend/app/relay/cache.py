"""In-memory snapshot of the latest ticker per symbol."""

from __future__ import annotations

import time
from collections.abc import Iterable

from .config import STALENESS_WINDOW
from .models import Snapshot, TickerRecord


class SnapshotCache:
    """Latest ticker record for each symbol, plus the time of the last write.

    Writers: UpstreamFeed (stream merges and the one-shot REST bootstrap).
    Readers: the /api/cache endpoint, through get_snapshot().

    No lock: every write happens inside a single event-loop step.
    """

    def __init__(self, staleness_window: float = STALENESS_WINDOW) -> None:
        self._records: dict[str, TickerRecord] = {}  # insertion-ordered
        self._staleness_window = staleness_window
        self._last_updated: float | None = None

    def merge(self, records: Iterable[TickerRecord], timestamp: float | None = None) -> int:
        """Merge a streamed batch. Returns the number of records written.

        Symbols in the batch replace their previous record in place (or are
        appended if unseen). Symbols absent from the batch are left untouched.
        An empty batch changes nothing, not even last_updated.
        """
        written = 0
        for record in records:
            self._records[record.symbol] = record
            written += 1
        if written:
            self._last_updated = timestamp if timestamp is not None else time.time()
        return written

    def seed(self, records: Iterable[TickerRecord], timestamp: float | None = None) -> int:
        """Bootstrap from a REST snapshot. Returns the number of symbols inserted.

        Only symbols not already present are inserted; anything streamed before
        the bootstrap finished is newer than the REST snapshot.
        """
        inserted = 0
        for record in records:
            if record.symbol not in self._records:
                self._records[record.symbol] = record
                inserted += 1
        if inserted and self._last_updated is None:
            self._last_updated = timestamp if timestamp is not None else time.time()
        return inserted

    def get_snapshot(self, now: float | None = None) -> Snapshot | None:
        """Return the current records if fresh, else None.

        Stale data stays in memory; staleness is decided here, at read time.
        """
        if not self._records or self._last_updated is None:
            return None
        now = now if now is not None else time.time()
        if now - self._last_updated >= self._staleness_window:
            return None
        return Snapshot(records=list(self._records.values()), as_of=self._last_updated)

    def get(self, symbol: str) -> TickerRecord | None:
        return self._records.get(symbol)

    def symbols(self) -> list[str]:
        return list(self._records)

    @property
    def last_updated(self) -> float | None:
        return self._last_updated

    @property
    def staleness_window(self) -> float:
        return self._staleness_window

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._records
