"""Error taxonomy for the market data subsystem.

None of these is fatal to the process. Each one resolves to either
"retry later" or "ignore and keep receiving".
"""

from __future__ import annotations


class MarketDataError(Exception):
    """Base class for market data errors."""


class CatalogFetchError(MarketDataError):
    """Transport or parse failure while fetching a provider's instrument list.

    The provider's previous catalog is left untouched and readiness still
    advances.
    """

    def __init__(self, provider: str, reason: str) -> None:
        self.provider = provider
        self.reason = reason
        super().__init__(f"{provider} catalog fetch failed: {reason}")


class SubscriptionSendError(MarketDataError):
    """Writing the subscribe message failed. Handled like a receive failure."""


class StreamDecodeError(MarketDataError):
    """A received frame could not be parsed. Logged and skipped."""


class ProtocolError(MarketDataError):
    """Provider reported a session-level error. Ends the session."""


class SelectionLimitExceeded(MarketDataError):
    """Attempt to track more instruments than the selection allows."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"You can select up to {limit} instruments.")


class StaleConnection(MarketDataError):
    """Connection reports itself open but has delivered nothing recently."""

    def __init__(self, group: str, silent_for: float | None) -> None:
        self.group = group
        self.silent_for = silent_for
        detail = "no message yet" if silent_for is None else f"silent for {silent_for:.0f}s"
        super().__init__(f"{group} connection is stale ({detail})")
