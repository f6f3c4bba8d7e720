"""Redis store backend against a minimal in-memory stand-in for redis.asyncio."""
from datetime import datetime, timedelta, timezone

import msgpack
import pytest

from marketlens.core.data.models import Exchange, Fundamentals, NoDataMarker, Quote, Symbol
from marketlens.core.data.store.redis_store import (
    RedisExchangeStore,
    RedisNoDataStore,
    RedisSymbolStore,
    fundamentals_store,
    quote_store,
)

NOW = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)
DAY = timedelta(hours=24)


class FakePipeline:

    def __init__(self, client):
        self._client = client
        self._ops = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def set(self, key, value):
        self._ops.append(("set", key, value))

    def sadd(self, key, member):
        self._ops.append(("sadd", key, member))

    def srem(self, key, member):
        self._ops.append(("srem", key, member))

    def delete(self, key):
        self._ops.append(("delete", key))

    async def execute(self):
        for op, key, *args in self._ops:
            if op == "set":
                await self._client.set(key, args[0])
            elif op == "sadd":
                self._client.sets.setdefault(key, set()).add(args[0].encode())
            elif op == "srem":
                self._client.sets.get(key, set()).discard(args[0].encode())
            else:
                self._client.values.pop(key, None)
        self._ops = []


class FakeRedis:

    def __init__(self):
        self.values: dict[str, bytes] = {}
        self.sets: dict[str, set[bytes]] = {}

    async def get(self, key):
        return self.values.get(key)

    async def set(self, key, value):
        self.values[key] = value

    async def delete(self, key):
        self.values.pop(key, None)

    async def smembers(self, key):
        return set(self.sets.get(key, set()))

    def pipeline(self, transaction=True):
        return FakePipeline(self)


class TestRedisStores:

    @pytest.mark.asyncio
    async def test_exchanges_msgpack_record(self):
        client = FakeRedis()
        store = RedisExchangeStore(client)
        await store.upsert_many([Exchange(code="US", name="USA Stocks", country="USA", currency="USD")], NOW, DAY)

        doc = msgpack.unpackb(client.values["exchanges:all"], raw=False)
        assert doc["rows"][0]["code"] == "US"

        record = await store.get_all()
        assert record.fetched_at == NOW
        assert (await store.get_by_code("us")).name == "USA Stocks"

    @pytest.mark.asyncio
    async def test_exchange_refresh_overwrites_blob(self):
        store = RedisExchangeStore(FakeRedis())
        await store.upsert_many([
            Exchange(code="US", name="USA Stocks", country="USA", currency="USD"),
            Exchange(code="LSE", name="London Exchange", country="UK", currency="GBP"),
        ], NOW, DAY)
        later = NOW + DAY
        await store.upsert_many([Exchange(code="US", name="USA Stocks", country="USA", currency="USD")], later, DAY)

        record = await store.get_all()
        assert [e.code for e in record.value] == ["US"]
        assert record.fetched_at == later
        assert await store.get_by_code("LSE") is None

    @pytest.mark.asyncio
    async def test_symbols_ticker_index_and_delete(self):
        store = RedisSymbolStore(FakeRedis())
        await store.upsert_many("US", [
            Symbol(ticker="AAPL", exchange_code="NASDAQ", parent_exchange="US", name="Apple Inc"),
            Symbol(ticker="IBM", exchange_code="NYSE", parent_exchange="US", name="IBM"),
        ], NOW, DAY)

        assert [s.ticker for s in (await store.get_by_exchange("US")).value] == ["AAPL", "IBM"]
        assert (await store.get_by_ticker("aapl")).exchange_code == "NASDAQ"

        await store.delete_by_exchange("US")
        assert await store.get_by_exchange("US") is None
        assert await store.get_by_ticker("AAPL") is None

    @pytest.mark.asyncio
    async def test_keyed_records_keep_datetimes(self):
        client = FakeRedis()
        quotes = quote_store(client)
        fundamentals = fundamentals_store(client)

        await quotes.upsert(Quote(ticker="AAPL", last_updated=NOW, current_price=190.0), NOW)
        await fundamentals.upsert(Fundamentals(ticker="AAPL", last_updated=NOW, sector="Technology"), NOW)

        assert "quote:AAPL" in client.values
        quote = await quotes.get("aapl")
        assert quote.value.last_updated == NOW
        assert quote.value.current_price == 190.0
        assert (await fundamentals.get("AAPL")).value.sector == "Technology"
        assert await quotes.get("MSFT") is None

    @pytest.mark.asyncio
    async def test_no_data_markers(self):
        client = FakeRedis()
        store = RedisNoDataStore(client)
        ttl = timedelta(days=30)

        await store.mark("spy", "NYSE ARCA", "No fundamentals", NOW, ttl)
        await store.mark("SPY", "nyse arca", "No fundamentals", NOW + DAY, ttl)

        assert "nodata:NYSE ARCA:SPY" in client.values
        marker = await store.get("SPY", "NYSE ARCA")
        assert isinstance(marker, NoDataMarker)
        assert marker.failure_count == 2
        assert marker.first_failed_at == NOW
        assert marker.expires_at == NOW + DAY + ttl

        await store.clear("SPY", "NYSE ARCA")
        assert await store.get("SPY", "NYSE ARCA") is None
