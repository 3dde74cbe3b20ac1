"""Abstract interface for streaming price sources."""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import Decoded, OutboundMessage, Provider, ProviderGroup


class StreamSource(ABC):
    """Wire protocol of one provider-group's streaming socket.

    A source knows how to subscribe and how to turn received frames into
    CanonicalUpdates. It never touches the socket itself: the generic
    ConnectionSupervisor owns the connection and drives the source.

    Lifecycle per connection:
        for msg in source.build_subscribe(["BTC-USD", ...]):
            await asyncio.sleep(msg.delay); await ws.send(msg.payload)
        async for frame in ws:
            decoded = source.decode(frame)
            # merge decoded.updates, send decoded.replies back
    """

    group: ProviderGroup
    url: str
    # True when one subscription streams the provider's whole universe, so
    # selection changes never require a resubscribe.
    broadcast: bool = False

    @abstractmethod
    def build_subscribe(self, native_symbols: list[str]) -> list[OutboundMessage]:
        """Frames to send right after the socket opens, in order.

        Broadcast sources ignore ``native_symbols``.
        """

    @abstractmethod
    def decode(self, raw: str | bytes) -> Decoded:
        """Parse one received frame.

        Raises StreamDecodeError for malformed frames and ProtocolError when
        the provider ends the session.
        """

    def classify(self, native_symbol: str) -> Provider:
        """Catalog a native symbol received on this socket belongs to."""
        return self.group.providers[0]

    @staticmethod
    def _text(raw: str | bytes) -> str:
        return raw.decode("utf-8") if isinstance(raw, bytes) else raw
