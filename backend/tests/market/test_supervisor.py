"""Tests for ConnectionSupervisor (fake sockets, fake clock)."""

import asyncio
import json

import pytest
from fakes import FakeConnector, settle

from tickerbar.market.coinbase import COINBASE_WS_URL, CoinbaseSource
from tickerbar.market.models import ConnectionState
from tickerbar.market.supervisor import ConnectionSupervisor
from tickerbar.market.tradingview import TradingViewSource, encode_frame

TICKER = json.dumps({"type": "ticker", "product_id": "BTC-USD", "price": "97000", "open_24h": "95000"})


class Harness:
    """A supervisor plus everything it reported."""

    def __init__(self, connector, clock, source=None, selected=("BTC-USD",), **kwargs):
        self.selected = list(selected)
        self.updates = []
        self.states = []
        kwargs.setdefault("reconnect_delay", 100.0)
        self.supervisor = ConnectionSupervisor(
            source or CoinbaseSource(),
            symbols=lambda: list(self.selected),
            on_updates=self.updates.extend,
            on_state_change=lambda group, state: self.states.append(state),
            connect=connector,
            clock=clock,
            **kwargs,
        )

    def count(self, state):
        return self.states.count(state)


@pytest.mark.asyncio
class TestConnectionSupervisor:
    """State machine tests for ConnectionSupervisor."""

    async def test_start_without_selection(self, connector, clock):
        h = Harness(connector, clock, selected=())
        assert not h.supervisor.start()
        assert h.supervisor.state is ConnectionState.IDLE
        assert connector.urls == []

    async def test_connect_and_subscribe(self, connector, clock):
        h = Harness(connector, clock)
        assert h.supervisor.start()
        assert h.supervisor.state is ConnectionState.CONNECTING
        await settle()

        assert connector.urls == [COINBASE_WS_URL]
        assert h.supervisor.state is ConnectionState.STREAMING
        assert h.states == [
            ConnectionState.CONNECTING,
            ConnectionState.SUBSCRIBING,
            ConnectionState.STREAMING,
        ]
        assert json.loads(connector.last.sent[0])["product_ids"] == ["BTC-USD"]
        await h.supervisor.stop()

    async def test_second_start_is_ignored(self, connector, clock):
        h = Harness(connector, clock)
        h.supervisor.start()
        assert not h.supervisor.start()
        await settle()
        assert len(connector.urls) == 1
        await h.supervisor.stop()

    async def test_frames_update_prices_and_timestamp(self, connector, clock):
        h = Harness(connector, clock)
        h.supervisor.start()
        await settle()

        clock.advance(7)
        connector.last.feed(TICKER)
        await settle()

        assert [u.instrument_id for u in h.updates] == ["CB:BTC-USD"]
        assert h.supervisor.last_message_at == clock.now
        assert h.supervisor.silent_for() == 0
        await h.supervisor.stop()

    async def test_malformed_frame_skipped(self, connector, clock):
        h = Harness(connector, clock)
        h.supervisor.start()
        await settle()

        connector.last.feed("not json")
        connector.last.feed(TICKER)
        await settle()

        assert h.supervisor.state is ConnectionState.STREAMING
        assert len(h.updates) == 1
        await h.supervisor.stop()

    async def test_provider_error_recorded_not_fatal(self, connector, clock):
        h = Harness(connector, clock)
        h.supervisor.start()
        await settle()

        connector.last.feed(json.dumps({"type": "error", "reason": "no such product"}))
        await settle()

        assert h.supervisor.error_reported == "no such product"
        assert h.supervisor.state is ConnectionState.STREAMING
        await h.supervisor.stop()

    async def test_remote_close_schedules_reconnect(self, connector, clock):
        h = Harness(connector, clock, reconnect_delay=0.01)
        h.supervisor.start()
        await settle()

        connector.last.remote_close()
        await settle()
        assert h.supervisor.state is ConnectionState.RECONNECT_PENDING
        assert h.supervisor.reconnect_scheduled

        clock.advance(5)
        await asyncio.sleep(0.05)
        await settle()
        assert len(connector.urls) == 2
        assert h.supervisor.state is ConnectionState.STREAMING
        assert not h.supervisor.reconnect_scheduled
        await h.supervisor.stop()

    async def test_connect_failure_schedules_reconnect(self, clock):
        connector = FakeConnector(fail=True)
        h = Harness(connector, clock)
        h.supervisor.start()
        await settle()

        assert h.supervisor.state is ConnectionState.RECONNECT_PENDING
        assert h.supervisor.reconnect_scheduled
        await h.supervisor.stop()

    async def test_send_failure_schedules_reconnect(self, clock):
        connector = FakeConnector(fail_send=True)
        h = Harness(connector, clock)
        h.supervisor.start()
        await settle()

        assert h.supervisor.state is ConnectionState.RECONNECT_PENDING
        assert connector.last.closed
        await h.supervisor.stop()

    async def test_cooldown_drops_rapid_reconnects(self, clock):
        """Test that failures within the cooldown yield a single attempt."""
        connector = FakeConnector(fail=True)
        h = Harness(connector, clock, cooldown=3.0)
        h.supervisor.start()
        await settle()  # failure at t=0

        clock.advance(1)
        assert not h.supervisor.reconnect()  # failure-driven request at t=1
        h.supervisor.schedule_reconnect()
        clock.advance(2)
        await settle()

        assert h.count(ConnectionState.CONNECTING) == 1
        assert len(connector.urls) == 1
        await h.supervisor.stop()

    async def test_reconnect_after_cooldown(self, connector, clock):
        h = Harness(connector, clock, cooldown=3.0)
        h.supervisor.start()
        await settle()

        clock.advance(3.5)
        assert h.supervisor.reconnect()
        await settle()
        assert len(connector.urls) == 2
        assert connector.sockets[0].closed
        await h.supervisor.stop()

    async def test_force_bypasses_cooldown(self, connector, clock):
        h = Harness(connector, clock, cooldown=3.0)
        h.supervisor.start()
        await settle()

        clock.advance(0.5)
        assert h.supervisor.reconnect(force=True)
        await settle()
        assert len(connector.urls) == 2
        await h.supervisor.stop()

    async def test_resubscribe_lists_current_selection(self, connector, clock):
        h = Harness(connector, clock)
        h.supervisor.start()
        await settle()

        h.selected.append("ETH-USD")
        assert h.supervisor.resubscribe()
        await settle()

        assert json.loads(connector.last.sent[0])["product_ids"] == ["BTC-USD", "ETH-USD"]
        assert connector.sockets[0].closed
        assert h.states[2:4] == [ConnectionState.STREAMING, ConnectionState.CONNECTING]
        assert h.supervisor.state is ConnectionState.STREAMING
        await h.supervisor.stop()

    async def test_replaced_loop_does_not_reconnect(self, connector, clock):
        """Test that a torn-down receive loop never schedules a reconnect."""
        h = Harness(connector, clock)
        h.supervisor.start()
        await settle()
        old = connector.last

        h.supervisor.reconnect(force=True)
        old.feed(ConnectionError("reset"))
        await settle()

        assert not h.supervisor.reconnect_scheduled
        assert h.supervisor.state is ConnectionState.STREAMING
        await h.supervisor.stop()

    async def test_stop(self, connector, clock):
        h = Harness(connector, clock, reconnect_delay=0.01)
        h.supervisor.start()
        await settle()

        await h.supervisor.stop()
        assert h.supervisor.state is ConnectionState.IDLE
        assert ConnectionState.CLOSING in h.states
        assert connector.last.closed
        assert not h.supervisor.reconnect_scheduled
        assert h.supervisor.last_reconnect_attempt_at is None

        await asyncio.sleep(0.05)
        assert len(connector.urls) == 1

    async def test_stop_while_streaming_can_restart(self, connector, clock):
        """Test that a streaming supervisor stops cleanly more than once."""
        h = Harness(connector, clock)
        for _ in range(2):
            h.supervisor.start()
            await settle()
            assert h.supervisor.state is ConnectionState.STREAMING

            await h.supervisor.stop()
            assert h.supervisor.state is ConnectionState.IDLE
            assert connector.last.closed

        assert len(connector.urls) == 2
        assert h.count(ConnectionState.CLOSING) == 2

    async def test_stop_cancels_pending_reconnect(self, clock):
        connector = FakeConnector(fail=True)
        h = Harness(connector, clock, reconnect_delay=0.01)
        h.supervisor.start()
        await settle()
        assert h.supervisor.reconnect_scheduled

        await h.supervisor.stop()
        clock.advance(10)
        await asyncio.sleep(0.05)
        assert len(connector.urls) == 1
        assert h.supervisor.state is ConnectionState.IDLE

    async def test_deselected_while_pending_goes_idle(self, clock):
        connector = FakeConnector(fail=True)
        h = Harness(connector, clock)
        h.selected.clear()
        h.supervisor.schedule_reconnect()
        assert not h.supervisor.reconnect_scheduled
        assert h.supervisor.state is ConnectionState.IDLE


@pytest.mark.asyncio
class TestTradingViewSession:
    """The TradingView protocol driven through a supervisor."""

    async def test_heartbeat_answered(self, connector, clock):
        h = Harness(connector, clock, source=TradingViewSource(), selected=["NASDAQ:AAPL"])
        h.supervisor.start()
        await asyncio.sleep(0.2)
        ws = connector.last
        assert len(ws.sent) == 4

        ws.feed("~m~4~m~~h~9")
        await settle()
        assert ws.sent[-1] == "~m~4~m~~h~9"
        await h.supervisor.stop()

    async def test_protocol_error_ends_session(self, connector, clock):
        h = Harness(connector, clock, source=TradingViewSource(), selected=["NASDAQ:AAPL"])
        h.supervisor.start()
        await asyncio.sleep(0.2)

        connector.last.feed(encode_frame(json.dumps({"m": "protocol_error", "p": ["bad"]})))
        await settle()
        assert h.supervisor.state is ConnectionState.RECONNECT_PENDING
        assert connector.last.closed
        await h.supervisor.stop()
