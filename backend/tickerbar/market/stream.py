"""HTTP and SSE endpoints over the feed coordinator."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from .coordinator import FeedCoordinator
from .errors import SelectionLimitExceeded
from .models import Provider, Quote

logger = logging.getLogger(__name__)


def quote_view(coordinator: FeedCoordinator, quote: Quote) -> dict[str, Any]:
    """A quote merged with its instrument's display fields."""
    data = quote.to_dict()
    instrument = coordinator.catalogs.resolve(quote.instrument_id)
    if instrument is not None:
        data.update(
            symbol=instrument.display_symbol,
            name=instrument.display_name,
            glyph=instrument.glyph,
            provider=instrument.provider.value,
        )
    return data


def create_stream_router(coordinator: FeedCoordinator) -> APIRouter:
    """Create the API router with a reference to the coordinator.

    This factory pattern lets us inject the coordinator without globals.
    """
    router = APIRouter(prefix="/api", tags=["market"])

    @router.get("/prices")
    async def get_prices() -> list[dict[str, Any]]:
        """Quotes of the selected instruments, in selection order."""
        return [quote_view(coordinator, quote) for quote in coordinator.snapshots()]

    @router.get("/status")
    async def get_status() -> dict[str, Any]:
        status = coordinator.status()
        status["selected_groups"] = sorted(g.value for g in coordinator.selection.groups())
        return status

    @router.get("/instruments")
    async def list_instruments(provider: Provider) -> list[dict[str, Any]]:
        """One provider's catalog, sorted by display name."""
        selected = set(coordinator.selection.ids)
        return [
            {
                **asdict(instrument),
                "provider": instrument.provider.value,
                "selected": instrument.id in selected,
            }
            for instrument in coordinator.catalogs[provider].sorted_by_name()
        ]

    @router.post("/selection/{instrument_id:path}")
    async def toggle_selection(instrument_id: str) -> dict[str, Any]:
        try:
            change = await coordinator.toggle(instrument_id)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Unknown instrument: {instrument_id}")
        except SelectionLimitExceeded as e:
            raise HTTPException(status_code=409, detail=str(e))
        if not change.accepted:
            raise HTTPException(status_code=409, detail="At least one instrument must stay selected.")
        return {"selection": list(change.selection), "added": change.added, "removed": change.removed}

    @router.post("/reconnect", status_code=202)
    async def reconnect_all() -> dict[str, str]:
        await coordinator.reconnect_all()
        return {"status": "reconnecting"}

    @router.get("/stream/prices")
    async def stream_prices(request: Request) -> StreamingResponse:
        """SSE endpoint for live price updates.

        The client connects with EventSource and receives events like:

            data: [{"id": "CB:BTC-USD", "price": 97001.5, "change_percent": 1.2, ...}, ...]

        Includes a retry directive so the browser auto-reconnects on
        disconnection (EventSource built-in behavior).
        """
        return StreamingResponse(
            _generate_events(coordinator, request),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",  # Disable nginx buffering if proxied
            },
        )

    return router


async def _generate_events(
    coordinator: FeedCoordinator,
    request: Request,
    interval: float = 0.5,
) -> AsyncGenerator[str, None]:
    """Async generator that yields SSE-formatted price events.

    Polls every `interval` seconds and sends the selection's quotes only
    when the store version moved. Stops when the client disconnects.
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

            current_version = coordinator.prices.version
            if current_version != last_version:
                last_version = current_version
                quotes = coordinator.snapshots()
                if quotes:
                    payload = json.dumps([quote_view(coordinator, q) for q in quotes])
                    yield f"data: {payload}\n\n"

            await asyncio.sleep(interval)
    except asyncio.CancelledError:
        logger.info("SSE stream cancelled for: %s", client_ip)
