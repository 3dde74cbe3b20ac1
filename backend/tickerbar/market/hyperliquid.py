"""Hyperliquid ``allMids`` broadcast feeds."""

from __future__ import annotations

import json
import logging

from .errors import StreamDecodeError
from .interface import StreamSource
from .loaders import AUXILIARY_DEX
from .models import (
    CanonicalUpdate,
    Decoded,
    OutboundMessage,
    Provider,
    ProviderGroup,
    instrument_id,
)

logger = logging.getLogger(__name__)

HYPERLIQUID_WS_URL = "wss://api.hyperliquid.xyz/ws"


class AllMidsSource(StreamSource):
    """One ``allMids`` subscription pushes the mid of every listed coin.

    Frame shape::

        {"channel": "allMids", "data": {"mids": {"BTC": "97001.5", "@107": "23.1", ...}}}

    Perps and spot share this socket. Spot coins are named ``@<index>`` or
    ``BASE/QUOTE``; everything else is a perp.
    """

    group = ProviderGroup.HYPERLIQUID
    url = HYPERLIQUID_WS_URL
    broadcast = True
    dex: str | None = None

    def build_subscribe(self, native_symbols: list[str]) -> list[OutboundMessage]:
        subscription = {"type": "allMids"}
        if self.dex:
            subscription["dex"] = self.dex
        msg = {"method": "subscribe", "subscription": subscription}
        return [OutboundMessage(json.dumps(msg, separators=(",", ":")))]

    def classify(self, native_symbol: str) -> Provider:
        if native_symbol.startswith("@") or "/" in native_symbol:
            return Provider.SPOT_ON_PERP_VENUE
        return Provider.PERPETUALS

    def decode(self, raw: str | bytes) -> Decoded:
        try:
            data = json.loads(self._text(raw))
        except (UnicodeDecodeError, ValueError) as e:
            raise StreamDecodeError(f"Hyperliquid frame is not JSON: {e}") from e
        if not isinstance(data, dict) or data.get("channel") != "allMids":
            # subscriptionResponse acks, pongs
            return Decoded()

        mids = (data.get("data") or {}).get("mids")
        if not isinstance(mids, dict):
            raise StreamDecodeError("allMids frame without a mids map")

        updates = []
        for native, price_str in mids.items():
            try:
                price = float(price_str)
            except (TypeError, ValueError):
                logger.debug("Skipping unparseable mid %r for %s", price_str, native)
                continue
            provider = self.classify(native)
            updates.append(CanonicalUpdate(instrument_id=instrument_id(provider, native), price=price))
        return Decoded(updates=updates)


class AuxiliaryDexSource(AllMidsSource):
    """``allMids`` scoped to the HIP-3 ``xyz`` dex. Keys look like ``xyz:TSLA``."""

    group = ProviderGroup.AUXILIARY_DEX
    dex = AUXILIARY_DEX

    def classify(self, native_symbol: str) -> Provider:
        return Provider.AUXILIARY_DEX
