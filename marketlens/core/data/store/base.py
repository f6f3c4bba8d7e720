"""Store contracts — narrow, natural-key access with fetch timestamps.

Implementations may raise on I/O failure; the orchestrators decide whether a
failure is a cache miss (reads) or a logged, swallowed event (write-back).
"""
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Generic, TypeVar

from marketlens.core.data.models import CacheRecord, Exchange, Fundamentals, NoDataMarker, Quote, Symbol

T = TypeVar("T")


class ExchangeStore(ABC):

    @abstractmethod
    async def get_all(self) -> CacheRecord[list[Exchange]] | None:
        """The stored exchange set with its fetch time; None when empty."""
        ...

    @abstractmethod
    async def get_by_code(self, code: str) -> Exchange | None:
        ...

    @abstractmethod
    async def upsert_many(self, exchanges: list[Exchange], fetched_at: datetime, ttl: timedelta) -> None:
        """Replace the stored set; exchanges missing from ``exchanges`` are dropped."""
        ...


class SymbolStore(ABC):

    @abstractmethod
    async def get_by_exchange(self, exchange_code: str) -> CacheRecord[list[Symbol]] | None:
        """The exchange's whole symbol set; None when nothing is stored."""
        ...

    @abstractmethod
    async def get_by_ticker(self, ticker: str) -> Symbol | None:
        """First stored symbol with this ticker, across exchanges."""
        ...

    @abstractmethod
    async def upsert_many(
        self, exchange_code: str, symbols: list[Symbol], fetched_at: datetime, ttl: timedelta
    ) -> None:
        ...

    @abstractmethod
    async def delete_by_exchange(self, exchange_code: str) -> None:
        ...


class KeyedStore(ABC, Generic[T]):
    """Single records upserted by ticker (quotes, fundamentals)."""

    @abstractmethod
    async def get(self, ticker: str) -> CacheRecord[T] | None:
        ...

    @abstractmethod
    async def upsert(self, value: T, fetched_at: datetime) -> None:
        ...


class NoDataStore(ABC):
    """Instruments known to have no fundamentals, keyed by (ticker, exchange_code)."""

    @abstractmethod
    async def get(self, ticker: str, exchange_code: str) -> NoDataMarker | None:
        ...

    @abstractmethod
    async def mark(
        self, ticker: str, exchange_code: str, reason: str | None, now: datetime, ttl: timedelta
    ) -> None:
        """Record a miss; repeated marks bump ``failure_count`` and push ``expires_at`` out."""
        ...

    @abstractmethod
    async def clear(self, ticker: str, exchange_code: str) -> None:
        ...


QuoteStore = KeyedStore[Quote]
FundamentalsStore = KeyedStore[Fundamentals]
