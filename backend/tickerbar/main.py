"""FastAPI application wiring the feed coordinator to its HTTP routes."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import Settings
from .market import FeedCoordinator, create_coordinator, create_stream_router


def create_app(
    settings: Settings | None = None,
    coordinator: FeedCoordinator | None = None,
) -> FastAPI:
    """Build the app. The coordinator starts and stops with the app's lifespan."""
    coordinator = coordinator or create_coordinator(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await coordinator.start()
        try:
            yield
        finally:
            await coordinator.shutdown()

    app = FastAPI(title="tickerbar", lifespan=lifespan)
    app.state.coordinator = coordinator
    app.include_router(create_stream_router(coordinator))
    return app
