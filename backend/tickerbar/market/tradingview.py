"""TradingView quote-session feed.

TradingView wraps every logical message as ``~m~<byte length>~m~<payload>``,
several of which may arrive in one websocket frame. Payloads are JSON
``{"m": <method>, "p": [<params>]}`` or heartbeats like ``~h~12`` that must
be answered with the exact frame that carried them.
"""

from __future__ import annotations

import json
import logging
import random
import string
from typing import Any

from .errors import ProtocolError, StreamDecodeError
from .interface import StreamSource
from .models import CanonicalUpdate, Decoded, OutboundMessage, ProviderGroup, instrument_id

logger = logging.getLogger(__name__)

TRADINGVIEW_WS_URL = "wss://data.tradingview.com/socket.io/websocket"

FRAME_MARKER = "~m~"
HEARTBEAT_PREFIX = "~h~"
ANONYMOUS_TOKEN = "unauthorized_user_token"
QUOTE_FIELDS = ("lp", "ch", "chp", "volume", "open_price", "high_price", "low_price")
# The server rejects symbols added to a session it has not finished creating
ADD_SYMBOLS_DELAY = 0.1

_SESSION_CHARS = string.ascii_lowercase + string.digits


def encode_frame(payload: str) -> str:
    """Wrap one payload. The length is its UTF-8 byte count."""
    return f"{FRAME_MARKER}{len(payload.encode('utf-8'))}{FRAME_MARKER}{payload}"


def split_frames(raw: str) -> list[str]:
    """Split a received buffer into its framed payloads.

    Parsing stops at the first byte that is not a well-formed header. A
    final payload shorter than its declared length is returned as is.
    """
    marker = FRAME_MARKER.encode("ascii")
    data = raw.encode("utf-8")
    payloads: list[str] = []
    pos = 0
    while data.startswith(marker, pos):
        pos += len(marker)
        header_end = data.find(marker, pos)
        if header_end == -1:
            break
        length = data[pos:header_end]
        if not length.isdigit():
            break
        pos = header_end + len(marker)
        end = min(pos + int(length), len(data))
        payloads.append(data[pos:end].decode("utf-8", errors="replace"))
        pos = end
    return payloads


def new_session_id() -> str:
    return "qs_" + "".join(random.choices(_SESSION_CHARS, k=12))


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


class TradingViewSource(StreamSource):
    """Per-symbol quote session over the TradingView socket."""

    group = ProviderGroup.EQUITIES_SCANNER
    url = TRADINGVIEW_WS_URL
    broadcast = False

    def __init__(self) -> None:
        self.session_id = ""

    @staticmethod
    def message(method: str, params: list[Any]) -> str:
        payload = json.dumps({"m": method, "p": params}, separators=(",", ":"))
        return encode_frame(payload)

    def build_subscribe(self, native_symbols: list[str]) -> list[OutboundMessage]:
        # Fresh session per connection; the old one died with its socket
        self.session_id = new_session_id()
        frames = [
            OutboundMessage(self.message("set_auth_token", [ANONYMOUS_TOKEN])),
            OutboundMessage(self.message("quote_create_session", [self.session_id])),
            OutboundMessage(self.message("quote_set_fields", [self.session_id, *QUOTE_FIELDS])),
        ]
        for index, symbol in enumerate(native_symbols):
            frames.append(
                OutboundMessage(
                    self.message("quote_add_symbols", [self.session_id, symbol]),
                    delay=ADD_SYMBOLS_DELAY if index == 0 else 0.0,
                )
            )
        return frames

    def decode(self, raw: str | bytes) -> Decoded:
        try:
            text = self._text(raw)
        except UnicodeDecodeError as e:
            raise StreamDecodeError(f"TradingView frame is not UTF-8: {e}") from e

        payloads = split_frames(text)
        if not payloads and text:
            raise StreamDecodeError(f"Unframed TradingView message: {text[:40]!r}")

        decoded = Decoded()
        for payload in payloads:
            if payload.startswith(HEARTBEAT_PREFIX):
                # Echo the frame exactly as received, once per frame
                if not decoded.replies:
                    decoded.replies.append(text)
                continue
            if not payload.startswith("{"):
                continue
            try:
                msg = json.loads(payload)
            except ValueError:
                logger.warning("Skipping malformed TradingView payload: %.80s", payload)
                continue

            if not isinstance(msg, dict):
                continue
            method = msg.get("m")
            params = msg.get("p")
            if not isinstance(params, list):
                params = []
            if method == "protocol_error":
                raise ProtocolError(f"TradingView protocol error: {params}")
            if method == "qsd":
                update = self._quote(params)
                if update is not None:
                    decoded.updates.append(update)
        return decoded

    def _quote(self, params: list[Any]) -> CanonicalUpdate | None:
        """Build an update from ``qsd`` params ``[session, {"n": sym, "v": {...}}]``.

        Quote data is incremental: ``v`` only holds fields that changed.
        """
        if len(params) < 2 or not isinstance(params[1], dict):
            return None
        symbol = params[1].get("n")
        values = params[1].get("v")
        if not symbol or not isinstance(values, dict):
            return None

        price = _number(values.get("lp"))
        change_percent = _number(values.get("chp"))
        open_price = _number(values.get("open_price"))
        if price is None and change_percent is None and open_price is None:
            return None
        return CanonicalUpdate(
            instrument_id=instrument_id(self.classify(symbol), symbol),
            price=price,
            # chp is measured against the prior close, which is what the
            # catalog seeded as the baseline; open_price only fills a gap
            fallback_baseline=open_price,
            change_percent=change_percent,
        )
