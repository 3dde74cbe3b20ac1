"""Coinbase Exchange ticker feed."""

from __future__ import annotations

import json

from .errors import StreamDecodeError
from .interface import StreamSource
from .models import CanonicalUpdate, Decoded, OutboundMessage, ProviderGroup, instrument_id


COINBASE_WS_URL = "wss://ws-feed.exchange.coinbase.com"


class CoinbaseSource(StreamSource):
    """Per-symbol ticker subscription.

    Frames are JSON objects discriminated by ``type``:
      - ``ticker``: product_id, price, open_24h, volume_24h
      - ``subscriptions``: subscription ack
      - ``error``: reported by the exchange, e.g. an unknown product id
    """

    group = ProviderGroup.SPOT_EXCHANGE
    url = COINBASE_WS_URL
    broadcast = False

    def build_subscribe(self, native_symbols: list[str]) -> list[OutboundMessage]:
        msg = {"type": "subscribe", "product_ids": list(native_symbols), "channels": ["ticker"]}
        return [OutboundMessage(json.dumps(msg))]

    def decode(self, raw: str | bytes) -> Decoded:
        try:
            data = json.loads(self._text(raw))
        except (UnicodeDecodeError, ValueError) as e:
            raise StreamDecodeError(f"Coinbase frame is not JSON: {e}") from e
        if not isinstance(data, dict):
            raise StreamDecodeError("Coinbase frame is not an object")

        kind = data.get("type")
        if kind == "ticker":
            return Decoded(updates=[self._ticker(data)])
        if kind == "error":
            reason = data.get("reason") or data.get("message") or "unknown error"
            return Decoded(error=str(reason))
        # "subscriptions" acks, heartbeats and anything else carry no prices
        return Decoded()

    def _ticker(self, data: dict) -> CanonicalUpdate:
        try:
            native = data["product_id"]
            price = float(data["price"])
        except (KeyError, TypeError, ValueError) as e:
            raise StreamDecodeError(f"Malformed Coinbase ticker: {e!r}") from e

        try:
            baseline = float(data.get("open_24h") or price)
        except (TypeError, ValueError):
            baseline = price
        return CanonicalUpdate(
            instrument_id=instrument_id(self.classify(native), native),
            price=price,
            baseline_price=baseline,
        )
