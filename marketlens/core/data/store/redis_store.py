"""Redis-backed store using MessagePack serialisation.

Keys never expire on their own; freshness is decided from the stored
``fetched_at`` so stale rows remain available as a last-known value.
"""
from dataclasses import asdict, fields, replace
from datetime import datetime, timedelta

import msgpack
import redis.asyncio as redis

from marketlens.core.data.models import CacheRecord, Exchange, Fundamentals, NoDataMarker, Quote, Symbol
from marketlens.core.data.store.base import ExchangeStore, KeyedStore, NoDataStore, SymbolStore

_DATETIME_FIELDS = {"last_updated", "first_failed_at", "last_attempted_at", "expires_at"}


def _pack(value: dict) -> bytes:
    return msgpack.packb(value, use_bin_type=True)


def _unpack(raw: bytes) -> dict:
    return msgpack.unpackb(raw, raw=False)


def _encode(obj) -> dict:
    data = asdict(obj)
    for key in _DATETIME_FIELDS & data.keys():
        data[key] = data[key].isoformat()
    return data


def _decode(cls, data: dict):
    known = {f.name for f in fields(cls)}
    values = {k: v for k, v in data.items() if k in known}
    for key in _DATETIME_FIELDS & values.keys():
        values[key] = datetime.fromisoformat(values[key])
    return cls(**values)


class RedisExchangeStore(ExchangeStore):

    KEY = "exchanges:all"

    def __init__(self, client: redis.Redis):
        self.client = client

    async def get_all(self) -> CacheRecord[list[Exchange]] | None:
        raw = await self.client.get(self.KEY)
        if not raw:
            return None
        doc = _unpack(raw)
        exchanges = [_decode(Exchange, row) for row in doc["rows"]]
        if not exchanges:
            return None
        return CacheRecord(exchanges, datetime.fromisoformat(doc["fetched_at"]))

    async def get_by_code(self, code: str) -> Exchange | None:
        record = await self.get_all()
        if record is None:
            return None
        wanted = code.upper()
        return next((e for e in record.value if e.code.upper() == wanted), None)

    async def upsert_many(self, exchanges: list[Exchange], fetched_at: datetime, ttl: timedelta) -> None:
        rows = [_encode(e) for e in sorted(exchanges, key=lambda e: e.code.upper())]
        await self.client.set(self.KEY, _pack({"fetched_at": fetched_at.isoformat(), "rows": rows}))


class RedisSymbolStore(SymbolStore):
    """One blob per parent exchange plus a ticker -> exchanges index set."""

    def __init__(self, client: redis.Redis):
        self.client = client

    @staticmethod
    def _key(exchange_code: str) -> str:
        return f"symbols:{exchange_code.upper()}"

    @staticmethod
    def _ticker_key(ticker: str) -> str:
        return f"symbols:ticker:{ticker.upper()}"

    async def get_by_exchange(self, exchange_code: str) -> CacheRecord[list[Symbol]] | None:
        raw = await self.client.get(self._key(exchange_code))
        if not raw:
            return None
        doc = _unpack(raw)
        symbols = [_decode(Symbol, row) for row in doc["rows"]]
        if not symbols:
            return None
        return CacheRecord(symbols, datetime.fromisoformat(doc["fetched_at"]))

    async def get_by_ticker(self, ticker: str) -> Symbol | None:
        parents = sorted(m.decode() if isinstance(m, bytes) else m
                         for m in await self.client.smembers(self._ticker_key(ticker)))
        wanted = ticker.upper()
        matches = []
        for parent in parents:
            record = await self.get_by_exchange(parent)
            if record is not None:
                matches.extend(s for s in record.value if s.ticker.upper() == wanted)
        return min(matches, key=lambda s: s.exchange_code) if matches else None

    async def upsert_many(
        self, exchange_code: str, symbols: list[Symbol], fetched_at: datetime, ttl: timedelta
    ) -> None:
        merged: dict[tuple[str, str], Symbol] = {}
        current = await self.get_by_exchange(exchange_code)
        if current is not None:
            merged.update(((s.ticker.upper(), s.exchange_code.upper()), s) for s in current.value)
        merged.update(((s.ticker.upper(), s.exchange_code.upper()), s) for s in symbols)
        rows = [_encode(s) for _, s in sorted(merged.items())]

        parent = exchange_code.upper()
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.set(self._key(parent), _pack({"fetched_at": fetched_at.isoformat(), "rows": rows}))
            for ticker, _ in merged:
                pipe.sadd(self._ticker_key(ticker), parent)
            await pipe.execute()

    async def delete_by_exchange(self, exchange_code: str) -> None:
        current = await self.get_by_exchange(exchange_code)
        parent = exchange_code.upper()
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.delete(self._key(parent))
            for symbol in current.value if current else []:
                pipe.srem(self._ticker_key(symbol.ticker), parent)
            await pipe.execute()


class RedisKeyedStore(KeyedStore):
    """Quote / fundamentals records under ``{prefix}:{TICKER}``."""

    def __init__(self, client: redis.Redis, prefix: str, model: type):
        self.client = client
        self._prefix = prefix
        self._model = model

    def _key(self, ticker: str) -> str:
        return f"{self._prefix}:{ticker.upper()}"

    async def get(self, ticker: str) -> CacheRecord | None:
        raw = await self.client.get(self._key(ticker))
        if not raw:
            return None
        doc = _unpack(raw)
        return CacheRecord(_decode(self._model, doc["value"]), datetime.fromisoformat(doc["fetched_at"]))

    async def upsert(self, value, fetched_at: datetime) -> None:
        doc = {"fetched_at": fetched_at.isoformat(), "value": _encode(value)}
        await self.client.set(self._key(value.ticker), _pack(doc))


class RedisNoDataStore(NoDataStore):
    """Markers under ``nodata:{EXCHANGE}:{TICKER}``; expiry is read from the record."""

    def __init__(self, client: redis.Redis):
        self.client = client

    @staticmethod
    def _key(ticker: str, exchange_code: str) -> str:
        return f"nodata:{exchange_code.upper()}:{ticker.upper()}"

    async def get(self, ticker: str, exchange_code: str) -> NoDataMarker | None:
        raw = await self.client.get(self._key(ticker, exchange_code))
        if not raw:
            return None
        return _decode(NoDataMarker, _unpack(raw))

    async def mark(
        self, ticker: str, exchange_code: str, reason: str | None, now: datetime, ttl: timedelta
    ) -> None:
        current = await self.get(ticker, exchange_code)
        if current is None:
            marker = NoDataMarker(
                ticker=ticker.upper(),
                exchange_code=exchange_code.upper(),
                failure_count=1,
                first_failed_at=now,
                last_attempted_at=now,
                expires_at=now + ttl,
                last_error=reason,
            )
        else:
            marker = replace(
                current,
                failure_count=current.failure_count + 1,
                last_attempted_at=now,
                expires_at=now + ttl,
                last_error=reason,
            )
        await self.client.set(self._key(ticker, exchange_code), _pack(_encode(marker)))

    async def clear(self, ticker: str, exchange_code: str) -> None:
        await self.client.delete(self._key(ticker, exchange_code))


def quote_store(client: redis.Redis) -> RedisKeyedStore:
    return RedisKeyedStore(client, "quote", Quote)


def fundamentals_store(client: redis.Redis) -> RedisKeyedStore:
    return RedisKeyedStore(client, "fundamentals", Fundamentals)
