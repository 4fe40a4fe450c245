"""HTTP endpoints: health, cached snapshot, klines passthrough."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core import RelayCore
from .errors import QueryValidationError, UpstreamQueryError
from .models import iso_timestamp

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def create_http_router(core: RelayCore) -> APIRouter:
    """Create the HTTP router with a reference to the relay core."""
    router = APIRouter(tags=["http"])

    @router.get("/")
    @router.get("/health")
    async def health() -> dict:
        return {
            "status": "ok",
            "timestamp": iso_timestamp(),
            "uptime": core.uptime,
            "clients": len(core.registry),
            "binance_connected": core.upstream.connected,
        }

    @router.get("/api/cache")
    async def cached_tickers() -> JSONResponse:
        """Latest ticker snapshot, or 404 once it is older than the staleness window."""
        snapshot = core.cache.get_snapshot()
        if snapshot is None:
            return JSONResponse(
                status_code=404,
                content={"success": False, "error": "No cached data available"},
            )
        return JSONResponse(content={"success": True, **snapshot.to_dict()})

    @router.get("/api/klines")
    async def klines(
        symbol: str | None = None,
        interval: str | None = None,
        limit: str | None = None,
    ) -> JSONResponse:
        if not symbol or not symbol.strip():
            raise QueryValidationError("Missing symbol parameter")

        data = await core.rest_client.fetch_klines(symbol.strip(), interval=interval, limit=limit)
        logger.info("Klines fetched: %s", symbol)
        return JSONResponse(content=data)

    return router


async def cors_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Attach permissive CORS headers to every HTTP response.

    OPTIONS on any path is answered here with an empty 200.
    """
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=CORS_HEADERS)
    response = await call_next(request)
    response.headers.update(CORS_HEADERS)
    return response


def install_error_handlers(app: FastAPI) -> None:
    """Map relay errors and unknown routes to the JSON error bodies clients expect."""

    @app.exception_handler(QueryValidationError)
    async def _validation_error(request: Request, exc: QueryValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(UpstreamQueryError)
    async def _upstream_error(request: Request, exc: UpstreamQueryError) -> JSONResponse:
        logger.error("Upstream query %s failed: %s", exc.endpoint, exc)
        message = "Failed to parse response" if exc.parse_failure else "Failed to fetch klines data"
        return JSONResponse(status_code=500, content={"error": message})

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = "Not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"error": message}, headers=exc.headers)
