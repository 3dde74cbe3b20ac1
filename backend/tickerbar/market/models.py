"""Data models for market data."""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from enum import Enum


class Provider(str, Enum):
    """Catalog a tradable instrument comes from. The value is its id prefix."""

    SPOT_EXCHANGE = "CB"  # Coinbase spot pairs
    PERPETUALS = "HLP"  # Hyperliquid perpetuals
    SPOT_ON_PERP_VENUE = "HLS"  # Hyperliquid spot tokens
    AUXILIARY_DEX = "HLH"  # Hyperliquid "xyz" dex (stocks, commodities, indices)
    EQUITIES_SCANNER = "TV"  # TradingView US equities

    @classmethod
    def from_instrument_id(cls, instrument_id: str) -> Provider | None:
        """Resolve the provider from an ``<prefix>:<native>`` id, or None."""
        prefix, sep, _ = instrument_id.partition(":")
        if not sep:
            return None
        try:
            return cls(prefix)
        except ValueError:
            return None


class ProviderGroup(str, Enum):
    """Set of providers sharing one streaming socket."""

    SPOT_EXCHANGE = "spot_exchange"
    HYPERLIQUID = "hyperliquid"
    AUXILIARY_DEX = "auxiliary_dex"
    EQUITIES_SCANNER = "equities_scanner"

    @property
    def providers(self) -> tuple[Provider, ...]:
        return GROUP_PROVIDERS[self]

    @classmethod
    def of(cls, provider: Provider) -> ProviderGroup:
        for group, members in GROUP_PROVIDERS.items():
            if provider in members:
                return group
        raise KeyError(provider)


GROUP_PROVIDERS: dict[ProviderGroup, tuple[Provider, ...]] = {
    ProviderGroup.SPOT_EXCHANGE: (Provider.SPOT_EXCHANGE,),
    ProviderGroup.HYPERLIQUID: (Provider.PERPETUALS, Provider.SPOT_ON_PERP_VENUE),
    ProviderGroup.AUXILIARY_DEX: (Provider.AUXILIARY_DEX,),
    ProviderGroup.EQUITIES_SCANNER: (Provider.EQUITIES_SCANNER,),
}


class ConnectionState(str, Enum):
    """Lifecycle of one provider-group socket."""

    IDLE = "idle"
    CONNECTING = "connecting"
    SUBSCRIBING = "subscribing"
    STREAMING = "streaming"
    CLOSING = "closing"
    RECONNECT_PENDING = "reconnect_pending"


def instrument_id(provider: Provider, native_symbol: str) -> str:
    """Build the globally unique ``<prefix>:<native-symbol>`` id."""
    return f"{provider.value}:{native_symbol}"


def compute_change_percent(price: float, baseline_price: float) -> float:
    if baseline_price <= 0:
        return 0.0
    return (price - baseline_price) / baseline_price * 100


@dataclass(frozen=True, slots=True)
class Instrument:
    """Immutable identity of one tradable symbol on one provider."""

    id: str
    native_symbol: str
    display_symbol: str
    display_name: str
    glyph: str
    provider: Provider

    @property
    def group(self) -> ProviderGroup:
        return ProviderGroup.of(self.provider)


@dataclass(frozen=True, slots=True)
class Quote:
    """Immutable snapshot of an instrument's latest price.

    ``change_percent`` is derived from ``price`` and ``baseline_price`` on
    every read, so it can never drift from the pair it describes.
    """

    instrument_id: str
    price: float = 0.0  # 0 means "not yet known"
    baseline_price: float = 0.0
    last_update: float = field(default_factory=time.time)  # Unix seconds

    @property
    def change_percent(self) -> float:
        return compute_change_percent(self.price, self.baseline_price)

    @property
    def has_price(self) -> bool:
        return self.price > 0

    def with_price(
        self,
        price: float,
        baseline_price: float | None = None,
        timestamp: float | None = None,
    ) -> Quote:
        return replace(
            self,
            price=price,
            baseline_price=self.baseline_price if baseline_price is None else baseline_price,
            last_update=timestamp or time.time(),
        )

    def to_dict(self) -> dict:
        """Serialize for JSON / SSE transmission."""
        return {
            "id": self.instrument_id,
            "price": self.price,
            "baseline_price": self.baseline_price,
            "change_percent": round(self.change_percent, 4),
            "last_update": self.last_update,
        }


@dataclass(frozen=True, slots=True)
class CanonicalUpdate:
    """Provider-neutral price update produced by a protocol decoder.

    ``price`` may be None when a provider sends a partial field bag without
    a last price; the stored price is then kept. ``change_percent`` is the
    provider's own figure, used to derive the baseline it was computed from.
    """

    instrument_id: str
    price: float | None
    baseline_price: float | None = None
    change_percent: float | None = None
    fallback_baseline: float | None = None  # used only while no baseline is known
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True, slots=True)
class OutboundMessage:
    """One frame to send on a socket, optionally after a delay in seconds."""

    payload: str
    delay: float = 0.0


@dataclass(slots=True)
class Decoded:
    """Result of decoding one received frame."""

    updates: list[CanonicalUpdate] = field(default_factory=list)
    replies: list[str] = field(default_factory=list)  # raw frames to send back
    error: str | None = None  # provider-reported, non-terminal error
