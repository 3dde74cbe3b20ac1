"""Market data subsystem for tickerbar.

Public API:
    Instrument          - Immutable identity of one tradable symbol
    Quote               - Immutable price snapshot dataclass
    PriceStore          - Thread-safe in-memory price store
    StreamSource        - Abstract interface for streaming wire protocols
    FeedCoordinator     - Owns catalogs, selection, prices and sockets
    create_coordinator  - Factory that wires the coordinator to real providers
    create_stream_router - FastAPI router factory for the HTTP/SSE endpoints
"""

from .cache import PriceStore
from .coordinator import FeedCoordinator
from .factory import create_coordinator
from .interface import StreamSource
from .models import ConnectionState, Instrument, Provider, ProviderGroup, Quote
from .stream import create_stream_router

__all__ = [
    "ConnectionState",
    "FeedCoordinator",
    "Instrument",
    "PriceStore",
    "Provider",
    "ProviderGroup",
    "Quote",
    "StreamSource",
    "create_coordinator",
    "create_stream_router",
]
