"""In-memory store backend — thread-safe dict backing for tests and local runs."""
import threading
from dataclasses import replace
from datetime import datetime, timedelta
from typing import TypeVar

from marketlens.core.data.models import CacheRecord, Exchange, NoDataMarker, Symbol
from marketlens.core.data.store.base import ExchangeStore, KeyedStore, NoDataStore, SymbolStore

T = TypeVar("T")


class MemoryExchangeStore(ExchangeStore):

    def __init__(self):
        self._lock = threading.Lock()
        self._rows: dict[str, tuple[Exchange, datetime]] = {}

    async def get_all(self) -> CacheRecord[list[Exchange]] | None:
        with self._lock:
            rows = list(self._rows.values())
        if not rows:
            return None
        exchanges = sorted((e for e, _ in rows), key=lambda e: e.code)
        return CacheRecord(exchanges, min(ts for _, ts in rows))

    async def get_by_code(self, code: str) -> Exchange | None:
        with self._lock:
            row = self._rows.get(code.upper())
        return row[0] if row else None

    async def upsert_many(self, exchanges: list[Exchange], fetched_at: datetime, ttl: timedelta) -> None:
        rows = {e.code.upper(): (e, fetched_at) for e in exchanges}
        with self._lock:
            self._rows = rows


class MemorySymbolStore(SymbolStore):

    def __init__(self):
        self._lock = threading.Lock()
        # (ticker, exchange_code) -> (symbol, fetched_at)
        self._rows: dict[tuple[str, str], tuple[Symbol, datetime]] = {}

    async def get_by_exchange(self, exchange_code: str) -> CacheRecord[list[Symbol]] | None:
        parent = exchange_code.upper()
        with self._lock:
            rows = [r for r in self._rows.values() if r[0].parent_exchange.upper() == parent]
        if not rows:
            return None
        symbols = sorted((s for s, _ in rows), key=lambda s: s.ticker)
        return CacheRecord(symbols, min(ts for _, ts in rows))

    async def get_by_ticker(self, ticker: str) -> Symbol | None:
        wanted = ticker.upper()
        with self._lock:
            matches = [s for (t, _), (s, _) in self._rows.items() if t == wanted]
        return min(matches, key=lambda s: s.exchange_code) if matches else None

    async def upsert_many(
        self, exchange_code: str, symbols: list[Symbol], fetched_at: datetime, ttl: timedelta
    ) -> None:
        with self._lock:
            for symbol in symbols:
                self._rows[(symbol.ticker.upper(), symbol.exchange_code.upper())] = (symbol, fetched_at)

    async def delete_by_exchange(self, exchange_code: str) -> None:
        parent = exchange_code.upper()
        with self._lock:
            for key in [k for k, (s, _) in self._rows.items() if s.parent_exchange.upper() == parent]:
                del self._rows[key]


class MemoryKeyedStore(KeyedStore[T]):

    def __init__(self):
        self._lock = threading.Lock()
        self._rows: dict[str, CacheRecord[T]] = {}

    async def get(self, ticker: str) -> CacheRecord[T] | None:
        with self._lock:
            return self._rows.get(ticker.upper())

    async def upsert(self, value: T, fetched_at: datetime) -> None:
        with self._lock:
            self._rows[value.ticker.upper()] = CacheRecord(value, fetched_at)


class MemoryNoDataStore(NoDataStore):

    def __init__(self):
        self._lock = threading.Lock()
        self._rows: dict[tuple[str, str], NoDataMarker] = {}

    async def get(self, ticker: str, exchange_code: str) -> NoDataMarker | None:
        with self._lock:
            return self._rows.get((ticker.upper(), exchange_code.upper()))

    async def mark(
        self, ticker: str, exchange_code: str, reason: str | None, now: datetime, ttl: timedelta
    ) -> None:
        key = (ticker.upper(), exchange_code.upper())
        with self._lock:
            current = self._rows.get(key)
            if current is None:
                self._rows[key] = NoDataMarker(
                    ticker=key[0],
                    exchange_code=key[1],
                    failure_count=1,
                    first_failed_at=now,
                    last_attempted_at=now,
                    expires_at=now + ttl,
                    last_error=reason,
                )
            else:
                self._rows[key] = replace(
                    current,
                    failure_count=current.failure_count + 1,
                    last_attempted_at=now,
                    expires_at=now + ttl,
                    last_error=reason,
                )

    async def clear(self, ticker: str, exchange_code: str) -> None:
        with self._lock:
            self._rows.pop((ticker.upper(), exchange_code.upper()), None)
