"""Thread-safe in-memory price store."""

from __future__ import annotations

import time
from collections.abc import Iterable
from threading import Lock

from .models import CanonicalUpdate, Provider, Quote


class PriceStore:
    """Thread-safe map from instrument id to its latest Quote.

    Writers: one protocol decoder per instrument id, all on the event loop.
    Readers: the HTTP/SSE boundary and anything else, from any thread.

    Only ids seeded by a catalog load are accepted; updates for other ids are
    dropped so a provider racing a catalog swap cannot resurrect stale ids.
    """

    def __init__(self) -> None:
        self._quotes: dict[str, Quote] = {}
        self._by_provider: dict[Provider, set[str]] = {}
        self._lock = Lock()
        self._version: int = 0  # Monotonically increasing; bumped on every write

    def replace_provider(self, provider: Provider, quotes: Iterable[Quote]) -> None:
        """Atomically swap every quote of one provider for a fresh catalog's."""
        fresh = {quote.instrument_id: quote for quote in quotes}
        with self._lock:
            for stale_id in self._by_provider.get(provider, set()) - fresh.keys():
                self._quotes.pop(stale_id, None)
            self._quotes.update(fresh)
            self._by_provider[provider] = set(fresh)
            self._version += 1

    def merge(self, update: CanonicalUpdate) -> Quote | None:
        """Apply a decoded update. Returns the new Quote, or None if dropped.

        The provider's own percent change, when present, fixes the baseline
        as ``price / (1 + pct/100)`` so the stored pair reproduces it.
        """
        with self._lock:
            current = self._quotes.get(update.instrument_id)
            if current is None:
                return None

            price = current.price if update.price is None else update.price
            baseline = update.baseline_price
            if baseline is None and current.baseline_price <= 0:
                baseline = update.fallback_baseline
            if update.change_percent is not None and price > 0:
                ratio = 1 + update.change_percent / 100
                if ratio > 0:
                    baseline = price / ratio
            if baseline is not None and baseline <= 0:
                baseline = None

            quote = current.with_price(price, baseline, update.timestamp or time.time())
            self._quotes[update.instrument_id] = quote
            self._version += 1
            return quote

    def get(self, instrument_id: str) -> Quote | None:
        """Latest quote for one instrument, or None if unknown."""
        with self._lock:
            return self._quotes.get(instrument_id)

    def get_many(self, instrument_ids: Iterable[str]) -> dict[str, Quote]:
        """Consistent snapshot of several quotes taken under one lock."""
        with self._lock:
            return {i: self._quotes[i] for i in instrument_ids if i in self._quotes}

    def get_all(self) -> dict[str, Quote]:
        """Snapshot of all current quotes. Returns a shallow copy."""
        with self._lock:
            return dict(self._quotes)

    def get_price(self, instrument_id: str) -> float | None:
        """Convenience: get just the price float, or None."""
        quote = self.get(instrument_id)
        return quote.price if quote else None

    @property
    def version(self) -> int:
        """Current version counter. Useful for SSE change detection."""
        return self._version

    def __len__(self) -> int:
        with self._lock:
            return len(self._quotes)

    def __contains__(self, instrument_id: str) -> bool:
        with self._lock:
            return instrument_id in self._quotes
