"""HTTP surface: SSE stream of published tickers plus JSON query endpoints."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from .ranking import CATEGORIES
from .scheduler import PublishedState
from .session import MarketSession

logger = logging.getLogger(__name__)


def create_stream_router(session: MarketSession) -> APIRouter:
    """Create the router with a reference to the session.

    This factory pattern lets us inject the session without globals.
    """
    router = APIRouter(prefix="/api", tags=["market"])

    @router.get("/stream/prices")
    async def stream_prices(request: Request) -> StreamingResponse:
        """SSE endpoint for live ticker updates.

        Emits the full published state each time its version changes, at
        most once per ``interval``. Events look like:

            data: {"BTC": {"symbol": "BTC", "price": 65000.0, "direction": "up", ...}, ...}

        Includes a retry directive so the browser auto-reconnects on
        disconnection (EventSource built-in behavior).
        """
        return StreamingResponse(
            _generate_events(session.state, request),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",  # Disable nginx buffering if proxied
            },
        )

    @router.get("/market/assets")
    async def list_assets(q: str = "") -> list[dict]:
        return [session.describe(record) for record in session.search(q)]

    @router.get("/market/rankings/{category}")
    async def ranking(
        category: str,
        limit: int = Query(20, ge=1, le=1000),
        locked: bool = True,
    ) -> list[dict]:
        if category not in CATEGORIES:
            raise HTTPException(status_code=404, detail=f"Unknown category: {category}")
        return [session.describe(record) for record in session.view(category, limit, locked=locked)]

    @router.get("/market/stats")
    async def market_stats() -> dict:
        return session.stats().to_dict()

    @router.get("/market/status")
    async def market_status() -> dict:
        return session.status()

    @router.get("/market/klines/{symbol}")
    async def klines(
        symbol: str,
        interval: str = "1h",
        limit: int = Query(50, ge=1, le=1000),
    ) -> list[dict]:
        return [k.to_dict() for k in await session.klines(symbol, interval, limit)]

    return router


async def _generate_events(
    state: PublishedState,
    request: Request,
    interval: float = 0.5,
) -> AsyncGenerator[str, None]:
    """Async generator that yields SSE-formatted ticker events.

    Waits for a version change (or ``interval``) between events. Stops when
    the client disconnects (detected via request.is_disconnected()).
    """
    # Tell the client to retry after 1 second if the connection drops
    yield "retry: 1000\n\n"

    last_version = -1
    client_ip = request.client.host if request.client else "unknown"
    logger.info("SSE client connected: %s", client_ip)

    try:
        while True:
            if await request.is_disconnected():
                logger.info("SSE client disconnected: %s", client_ip)
                break

            current_version = state.version
            if current_version != last_version:
                last_version = current_version
                data = state.to_dict()
                if data:
                    yield f"data: {json.dumps(data)}\n\n"

            await state.wait_for_change(last_version, timeout=interval)
    except asyncio.CancelledError:
        logger.info("SSE stream cancelled for: %s", client_ip)
