"""FastAPI application serving the live ticker feed."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.feed import FeedSettings, MarketSession, create_stream_router

logger = logging.getLogger(__name__)


def create_app(settings: FeedSettings | None = None, session: MarketSession | None = None) -> FastAPI:
    settings = settings or FeedSettings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    session = session or MarketSession(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await session.start()
        try:
            yield
        finally:
            await session.stop()

    app = FastAPI(title="Ticker feed", lifespan=lifespan)
    app.state.session = session
    app.include_router(create_stream_router(session))
    return app
