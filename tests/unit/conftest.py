"""Shared fakes: a scriptable provider, a settable clock and failing stores."""
from datetime import datetime, timedelta, timezone

import pytest

from marketlens.core.data.models import Fundamentals, Quote
from marketlens.core.data.providers.base import MarketDataProvider
from marketlens.core.data.providers.schemas import ExchangeRaw, FundamentalsRaw, QuoteRaw, SymbolRaw
from marketlens.core.data.store.memory import (
    MemoryExchangeStore,
    MemoryKeyedStore,
    MemoryNoDataStore,
    MemorySymbolStore,
)
from marketlens.core.result import Err, Ok

T0 = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)


class FakeClock:

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeProvider(MarketDataProvider):
    """Answers from in-memory payloads; ``failures[operation] = Error`` scripts an Err.

    ``fundamentals_failures[TICKER]`` scripts an Err for one ticker only.
    """

    def __init__(self):
        self.exchanges = [
            ExchangeRaw(code="US", name="USA Stocks", country="USA", currency="USD", operating_mic="XNAS, XNYS"),
            ExchangeRaw(code="LSE", name="London Exchange", country="UK", currency="GBP", operating_mic="XLON"),
        ]
        self.symbols = {
            "US": [
                SymbolRaw(code="MSFT", name="Microsoft Corporation", exchange="NASDAQ", type="Common Stock", currency="USD"),
                SymbolRaw(code="AAPL", name="Apple Inc", exchange="NASDAQ", type="Common Stock", currency="USD"),
                SymbolRaw(code="SPY", name="SPDR S&P 500 ETF", exchange="NYSE ARCA", type="ETF", currency="USD"),
            ],
        }
        self.quote = QuoteRaw(code="AAPL.US", timestamp=1767614400, close=190.0, previous_close=188.0,
                              open=188.5, high=191.0, low=187.9, volume=51234567)
        self.fundamentals = FundamentalsRaw.model_validate({
            "General": {"Code": "AAPL", "Name": "Apple Inc", "Sector": "Technology",
                        "UpdatedAt": "2026-01-02"},
            "Highlights": {"MarketCapitalization": 3.0e12, "RevenueTTM": 400.0, "GrossProfitTTM": 180.0},
        })
        self.failures = {}
        self.fundamentals_failures = {}
        self.calls: list[tuple] = []

    @property
    def name(self) -> str:
        return "fake"

    def count(self, operation: str) -> int:
        return sum(1 for call in self.calls if call[0] == operation)

    def _answer(self, operation: str, args: tuple, value):
        self.calls.append((operation, *args))
        if operation in self.failures:
            return Err(self.failures[operation])
        return Ok(value)

    async def get_exchanges(self):
        return self._answer("exchanges", (), self.exchanges)

    async def get_symbols(self, exchange_code):
        return self._answer("symbols", (exchange_code,), self.symbols.get(exchange_code.upper(), []))

    async def get_quote(self, ticker, exchange_code):
        return self._answer("quote", (ticker, exchange_code), self.quote)

    async def get_fundamentals(self, ticker, exchange_code):
        if ticker.upper() in self.fundamentals_failures:
            self.calls.append(("fundamentals", ticker, exchange_code))
            return Err(self.fundamentals_failures[ticker.upper()])
        return self._answer("fundamentals", (ticker, exchange_code), self.fundamentals)


class BrokenKeyedStore(MemoryKeyedStore):
    """Reads work (when enabled), writes always raise."""

    def __init__(self, fail_reads: bool = False):
        super().__init__()
        self.fail_reads = fail_reads
        self.write_attempts = 0

    async def get(self, ticker):
        if self.fail_reads:
            raise ConnectionError("store offline")
        return await super().get(ticker)

    async def upsert(self, value, fetched_at):
        self.write_attempts += 1
        raise ConnectionError("store offline")


class BrokenSymbolStore(MemorySymbolStore):

    async def get_by_ticker(self, ticker):
        raise ConnectionError("store offline")

    async def upsert_many(self, exchange_code, symbols, fetched_at, ttl):
        raise ConnectionError("store offline")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def exchange_store():
    return MemoryExchangeStore()


@pytest.fixture
def symbol_store():
    return MemorySymbolStore()


@pytest.fixture
def quote_store():
    return MemoryKeyedStore[Quote]()


@pytest.fixture
def fundamentals_store():
    return MemoryKeyedStore[Fundamentals]()


@pytest.fixture
def no_data_store():
    return MemoryNoDataStore()


@pytest.fixture
def broken_quote_store():
    return BrokenKeyedStore()


@pytest.fixture
def broken_symbol_store():
    return BrokenSymbolStore()
