"""Binance REST client for the cache bootstrap and the klines passthrough."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .config import BINANCE_REST_BASE_URL, QUOTE_SUFFIX, REST_TIMEOUT
from .errors import UpstreamQueryError
from .models import TickerRecord

logger = logging.getLogger(__name__)

TICKER_24HR_PATH = "/api/v3/ticker/24hr"
KLINES_PATH = "/api/v3/klines"

DEFAULT_KLINES_INTERVAL = "1d"
DEFAULT_KLINES_LIMIT = "7"


class BinanceRestClient:
    """Thin async wrapper over the two public Binance endpoints the relay uses.

    The underlying httpx.AsyncClient is created lazily and can be injected
    (tests pass one built on httpx.MockTransport). An injected client is
    owned by the caller and is not closed by close().
    """

    def __init__(
        self,
        base_url: str = BINANCE_REST_BASE_URL,
        timeout: float = REST_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def fetch_ticker_snapshot(self, quote_suffix: str = QUOTE_SUFFIX) -> list[TickerRecord]:
        """GET the 24h ticker for every symbol, keeping those quoted in quote_suffix."""
        payload = await self._get_json(TICKER_24HR_PATH)
        if not isinstance(payload, list):
            raise UpstreamQueryError("Unexpected 24hr ticker payload", endpoint=TICKER_24HR_PATH)

        records = []
        for item in payload:
            record = TickerRecord.from_payload(item)
            if record is not None and record.symbol.endswith(quote_suffix):
                records.append(record)
        return records

    async def fetch_klines(
        self,
        symbol: str,
        interval: str | None = None,
        limit: str | int | None = None,
    ) -> Any:
        """GET candlesticks for a symbol. Returns the decoded body unmodified."""
        params = {
            "symbol": symbol,
            "interval": interval or DEFAULT_KLINES_INTERVAL,
            "limit": str(limit or DEFAULT_KLINES_LIMIT),
        }
        logger.info("Proxying klines request: symbol=%s interval=%s limit=%s", *params.values())
        return await self._get_json(KLINES_PATH, params=params)

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # --- Internal ---

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def _get_json(self, path: str, params: dict[str, str] | None = None) -> Any:
        client = self._get_client()
        try:
            response = await client.get(f"{self._base_url}{path}", params=params)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise UpstreamQueryError(f"Request failed: {e}", endpoint=path) from e

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamQueryError(f"Unparseable response: {e}", endpoint=path, parse_failure=True) from e
