"""Fixtures for market data tests."""

import pytest
from fakes import FakeClock, FakeConnector, StaticLoader

from tickerbar.market.models import Provider


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def static_loaders():
    return {
        Provider.SPOT_EXCHANGE: StaticLoader(
            Provider.SPOT_EXCHANGE, [("BTC-USD", 97000.0, 95000.0), ("ETH-USD", 3500.0, 3400.0)]
        ),
        Provider.PERPETUALS: StaticLoader(
            Provider.PERPETUALS, [("BTC", 97010.0, 95010.0), ("SOL", 200.0, 190.0)]
        ),
        Provider.SPOT_ON_PERP_VENUE: StaticLoader(
            Provider.SPOT_ON_PERP_VENUE, [("PURR/USDC", 0.2, 0.19), ("@107", 23.0, 22.0)]
        ),
        Provider.AUXILIARY_DEX: StaticLoader(Provider.AUXILIARY_DEX, [("xyz:TSLA", 250.0, 245.0)]),
        Provider.EQUITIES_SCANNER: StaticLoader(
            Provider.EQUITIES_SCANNER, [("NASDAQ:AAPL", 190.0, 188.0), ("NASDAQ:NVDA", 130.0, 128.0)]
        ),
    }
