"""Data layer — process-wide provider and store singletons.

All provider access goes through get_provider(), a single resilient EODHD
client whose circuit breaker is shared by every request. Stores are chosen
by ``settings.store_backend`` (sql | redis | memory) and built on first use.
"""
from dataclasses import dataclass

import redis.asyncio as redis

from marketlens.core.config import settings
from marketlens.core.data.models import Fundamentals, Quote
from marketlens.core.data.providers.eodhd import EodhdClient
from marketlens.core.data.providers.resilient import ResilientProvider
from marketlens.core.data.store.base import ExchangeStore, FundamentalsStore, NoDataStore, QuoteStore, SymbolStore


@dataclass(frozen=True)
class Stores:
    exchanges: ExchangeStore
    symbols: SymbolStore
    quotes: QuoteStore
    fundamentals: FundamentalsStore
    no_data: NoDataStore


_provider: ResilientProvider | None = None
_stores: Stores | None = None
_engine = None
_redis = None


def get_provider() -> ResilientProvider:
    """Return the shared resilient provider client."""
    global _provider
    if _provider is None:
        _provider = ResilientProvider(EodhdClient())
    return _provider


def _build_stores(backend: str) -> Stores:
    global _engine, _redis
    if backend == "sql":
        from marketlens.core.data.store.sql import (
            SqlExchangeStore,
            SqlFundamentalsStore,
            SqlNoDataStore,
            SqlQuoteStore,
            SqlSymbolStore,
        )
        from marketlens.core.db.session import create_session_factory

        _engine, session_factory = create_session_factory()
        return Stores(
            SqlExchangeStore(session_factory),
            SqlSymbolStore(session_factory),
            SqlQuoteStore(session_factory),
            SqlFundamentalsStore(session_factory),
            SqlNoDataStore(session_factory),
        )
    if backend == "redis":
        from marketlens.core.data.store import redis_store

        _redis = redis.from_url(settings.redis_url)
        return Stores(
            redis_store.RedisExchangeStore(_redis),
            redis_store.RedisSymbolStore(_redis),
            redis_store.quote_store(_redis),
            redis_store.fundamentals_store(_redis),
            redis_store.RedisNoDataStore(_redis),
        )
    if backend == "memory":
        from marketlens.core.data.store.memory import (
            MemoryExchangeStore,
            MemoryKeyedStore,
            MemoryNoDataStore,
            MemorySymbolStore,
        )

        return Stores(
            MemoryExchangeStore(),
            MemorySymbolStore(),
            MemoryKeyedStore[Quote](),
            MemoryKeyedStore[Fundamentals](),
            MemoryNoDataStore(),
        )
    raise ValueError(f"Unknown store backend: {backend!r}")


def get_stores() -> Stores:
    """Return the shared store backends for the configured backend."""
    global _stores
    if _stores is None:
        _stores = _build_stores(settings.store_backend)
    return _stores


async def close() -> None:
    """Release pooled connections held by the store backends."""
    global _stores, _engine, _redis
    if _engine is not None:
        await _engine.dispose()
    if _redis is not None:
        await _redis.aclose()
    _stores = _engine = _redis = None
