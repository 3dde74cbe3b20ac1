"""REST catalog loaders, one per provider."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx

from .assets import describe
from .errors import CatalogFetchError
from .models import Instrument, Provider, Quote, instrument_id

logger = logging.getLogger(__name__)

COINBASE_PRODUCTS_URL = "https://api.exchange.coinbase.com/products"
HYPERLIQUID_INFO_URL = "https://api.hyperliquid.xyz/info"
TRADINGVIEW_SCAN_URL = "https://scanner.tradingview.com/america/scan"

AUXILIARY_DEX = "xyz"

# Top US stocks by market cap listed on NYSE/NASDAQ
# Columns come back positionally in "d": name, close, description, exchange, change (%)
TRADINGVIEW_SCAN_QUERY: dict[str, Any] = {
    "columns": ["name", "close", "description", "exchange", "change"],
    "filter": [
        {"left": "type", "operation": "equal", "right": "stock"},
        {"left": "is_primary", "operation": "equal", "right": True},
        {"left": "exchange", "operation": "in_range", "right": ["NYSE", "NASDAQ"]},
    ],
    "sort": {"sortBy": "market_cap_basic", "sortOrder": "desc"},
    "range": [0, 100],
}


@dataclass
class CatalogResult:
    """Instruments of one provider plus the quotes seeded from the payload."""

    provider: Provider
    instruments: list[Instrument] = field(default_factory=list)
    quotes: list[Quote] = field(default_factory=list)

    def add(self, instrument: Instrument, price: float = 0.0, baseline: float = 0.0) -> None:
        self.instruments.append(instrument)
        self.quotes.append(Quote(instrument_id=instrument.id, price=price, baseline_price=baseline))


def _to_float(value: Any) -> float:
    """Parse a numeric field that may arrive as a string. Missing → 0."""
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class CatalogLoader(ABC):
    """Fetches and parses one provider's tradable-instrument list."""

    provider: Provider

    async def load(self, client: httpx.AsyncClient) -> CatalogResult:
        """Fetch and parse the catalog. Raises CatalogFetchError on any failure."""
        try:
            response = await self._request(client)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise CatalogFetchError(self.provider.name, str(e)) from e

        try:
            result = self.parse(payload)
        except (AttributeError, KeyError, IndexError, TypeError, ValueError) as e:
            raise CatalogFetchError(self.provider.name, f"unexpected payload: {e!r}") from e

        logger.info("Loaded %d %s instruments", len(result.instruments), self.provider.name)
        return result

    @abstractmethod
    async def _request(self, client: httpx.AsyncClient) -> httpx.Response:
        """Issue the provider's catalog request."""

    @abstractmethod
    def parse(self, payload: Any) -> CatalogResult:
        """Build instruments and seed quotes from the decoded JSON payload."""


class CoinbaseCatalogLoader(CatalogLoader):
    """Online USD-quoted Coinbase products."""

    provider = Provider.SPOT_EXCHANGE

    async def _request(self, client: httpx.AsyncClient) -> httpx.Response:
        return await client.get(COINBASE_PRODUCTS_URL, headers={"Accept": "application/json"})

    def parse(self, payload: Any) -> CatalogResult:
        if not isinstance(payload, list):
            raise TypeError(f"expected a product list, got {type(payload).__name__}")

        result = CatalogResult(self.provider)
        for product in payload:
            if product.get("quote_currency") != "USD" or product.get("status") != "online":
                continue
            native = product.get("id")
            base = product.get("base_currency")
            if not native or not base:
                continue
            name, glyph = describe(base, self.provider)
            result.add(
                Instrument(
                    id=instrument_id(self.provider, native),
                    native_symbol=native,
                    display_symbol=base,
                    display_name=name,
                    glyph=glyph,
                    provider=self.provider,
                )
            )
        return result


class _HyperliquidMetaLoader(CatalogLoader):
    """Loader for ``metaAndAssetCtxs``: ``[meta, assetCtxs]`` joined by index."""

    dex: str | None = None

    async def _request(self, client: httpx.AsyncClient) -> httpx.Response:
        body: dict[str, Any] = {"type": "metaAndAssetCtxs"}
        if self.dex:
            body["dex"] = self.dex
        return await client.post(HYPERLIQUID_INFO_URL, json=body)

    def display_symbol(self, native: str) -> str:
        return native

    def parse(self, payload: Any) -> CatalogResult:
        meta, contexts = payload[0], payload[1]
        universe = meta["universe"]

        result = CatalogResult(self.provider)
        for index, asset in enumerate(universe):
            native = asset.get("name")
            if not native or asset.get("isDelisted"):
                continue
            display = self.display_symbol(native)
            name, glyph = describe(display, self.provider)

            price = baseline = 0.0
            if index < len(contexts):
                ctx = contexts[index]
                baseline = _to_float(ctx.get("prevDayPx"))
                price = _to_float(ctx.get("markPx"))

            result.add(
                Instrument(
                    id=instrument_id(self.provider, native),
                    native_symbol=native,
                    display_symbol=display,
                    display_name=name,
                    glyph=glyph,
                    provider=self.provider,
                ),
                price=price,
                baseline=baseline,
            )
        return result


class PerpetualsCatalogLoader(_HyperliquidMetaLoader):
    provider = Provider.PERPETUALS


class AuxiliaryDexCatalogLoader(_HyperliquidMetaLoader):
    """HIP-3 dex assets; native names carry a ``xyz:`` namespace."""

    provider = Provider.AUXILIARY_DEX
    dex = AUXILIARY_DEX

    def display_symbol(self, native: str) -> str:
        return native.replace(f"{self.dex}:", "")


class SpotCatalogLoader(CatalogLoader):
    """Hyperliquid spot pairs from ``spotMetaAndAssetCtxs``.

    Pairs reference their tokens by index, so names go through the token
    table: ``@107`` → tokens ``[150, 0]`` → ``HYPE/USDC``. Pairs that already
    have a readable name (``PURR/USDC``) keep it.
    """

    provider = Provider.SPOT_ON_PERP_VENUE

    async def _request(self, client: httpx.AsyncClient) -> httpx.Response:
        return await client.post(HYPERLIQUID_INFO_URL, json={"type": "spotMetaAndAssetCtxs"})

    def parse(self, payload: Any) -> CatalogResult:
        spot_meta, contexts = payload[0], payload[1]
        token_names = {
            token["index"]: token["name"]
            for token in spot_meta["tokens"]
            if "index" in token and "name" in token
        }
        ctx_by_coin = {ctx["coin"]: ctx for ctx in contexts if "coin" in ctx}

        result = CatalogResult(self.provider)
        for pair in spot_meta["universe"]:
            native = pair.get("name")
            tokens = pair.get("tokens") or []
            if not native or len(tokens) < 2:
                continue
            base = token_names.get(tokens[0], "Unknown")
            quote = token_names.get(tokens[1], "USD")
            display = f"{base}/{quote}" if native.startswith("@") else native
            name, glyph = describe(base, self.provider)

            ctx = ctx_by_coin.get(native, {})
            result.add(
                Instrument(
                    id=instrument_id(self.provider, native),
                    native_symbol=native,
                    display_symbol=display,
                    display_name=name,
                    glyph=glyph,
                    provider=self.provider,
                ),
                price=_to_float(ctx.get("markPx")),
                baseline=_to_float(ctx.get("prevDayPx")),
            )
        return result


class EquitiesCatalogLoader(CatalogLoader):
    """Top US equities from the TradingView scanner."""

    provider = Provider.EQUITIES_SCANNER

    async def _request(self, client: httpx.AsyncClient) -> httpx.Response:
        return await client.post(TRADINGVIEW_SCAN_URL, json=TRADINGVIEW_SCAN_QUERY)

    def parse(self, payload: Any) -> CatalogResult:
        result = CatalogResult(self.provider)
        for row in payload["data"]:
            native = row.get("s")  # e.g. NASDAQ:AAPL
            values = row.get("d") or []
            if not native or len(values) < 5:
                continue
            ticker = values[0] or native.partition(":")[2]
            close = _to_float(values[1])
            description = values[2] or ticker
            change = _to_float(values[4])
            # The scan only reports today's change; back out the prior close from it
            baseline = close / (1 + change / 100) if change else close

            name, glyph = describe(ticker, self.provider, fallback_name=description)
            result.add(
                Instrument(
                    id=instrument_id(self.provider, native),
                    native_symbol=native,
                    display_symbol=ticker,
                    display_name=name,
                    glyph=glyph,
                    provider=self.provider,
                ),
                price=close,
                baseline=baseline,
            )
        return result


def default_loaders() -> dict[Provider, CatalogLoader]:
    loaders: list[CatalogLoader] = [
        CoinbaseCatalogLoader(),
        PerpetualsCatalogLoader(),
        SpotCatalogLoader(),
        AuxiliaryDexCatalogLoader(),
        EquitiesCatalogLoader(),
    ]
    return {loader.provider: loader for loader in loaders}
