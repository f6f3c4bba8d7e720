"""Symbols per exchange — validated listing and full-set refresh."""
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog

from marketlens.core.cache.read_through import CachedValue, CacheSource, Clock, ReadThroughCache, utc_now
from marketlens.core.config import settings
from marketlens.core.data.mappers import symbol_from_raw
from marketlens.core.data.models import Exchange, Symbol
from marketlens.core.data.providers.base import MarketDataProvider
from marketlens.core.data.providers.schemas import SymbolRaw
from marketlens.core.data.store.base import ExchangeStore, SymbolStore
from marketlens.core.result import Err, Error, Ok, Result

logger = structlog.get_logger()

MAX_PAGE_SIZE = 500
MAX_SEARCH_LENGTH = 100


@dataclass(frozen=True)
class SymbolPage:
    exchange: Exchange
    items: list[Symbol]
    page: int
    page_size: int
    total: int
    source: CacheSource
    ttl_remaining: int
    fetched_at: datetime

    @property
    def has_next(self) -> bool:
        return self.page * self.page_size < self.total


def filter_symbols(symbols: list[Symbol], search: str | None = None, type_filter: str | None = None) -> list[Symbol]:
    """Case-insensitive substring match on ticker or name, exact type match, sorted by ticker."""
    matches = symbols
    if search:
        needle = search.casefold()
        matches = [s for s in matches if needle in s.ticker.casefold() or needle in (s.name or "").casefold()]
    if type_filter:
        wanted = type_filter.casefold()
        matches = [s for s in matches if (s.type or "").casefold() == wanted]
    return sorted(matches, key=lambda s: s.ticker)


class SymbolService:

    def __init__(
        self,
        provider: MarketDataProvider,
        exchanges: ExchangeStore,
        symbols: SymbolStore,
        ttl: timedelta | None = None,
        clock: Clock = utc_now,
    ):
        self.provider = provider
        self.exchanges = exchanges
        self.symbols = symbols
        self.ttl = ttl or settings.symbols_ttl
        self._clock = clock
        self._cache = ReadThroughCache(
            "symbols",
            self.ttl,
            load=symbols.get_by_exchange,
            fetch=provider.get_symbols,
            map=self._map,
            save=self._replace,
            clock=clock,
        )

    @staticmethod
    def _map(raws: list[SymbolRaw], exchange_code: str, _now: datetime) -> list[Symbol]:
        return [symbol_from_raw(r, exchange_code) for r in raws]

    async def _replace(self, exchange_code: str, symbols: list[Symbol], fetched_at: datetime) -> None:
        await self.symbols.delete_by_exchange(exchange_code)
        await self.symbols.upsert_many(exchange_code, symbols, fetched_at, self.ttl)

    async def validate_exchange(self, exchange_code: str) -> Result[Exchange]:
        """The stored exchange for ``exchange_code``; BAD_EXCHANGE_CODE when unknown."""
        code = (exchange_code or "").strip().upper()
        if not code:
            return Err(Error.bad_exchange_code(exchange_code or ""))
        try:
            exchange = await self.exchanges.get_by_code(code)
        except Exception as exc:
            logger.warning("exchanges.lookup_failed", exchange=code, error=str(exc))
            exchange = None
        if exchange is None:
            return Err(Error.bad_exchange_code(code))
        return Ok(exchange)

    async def read_symbols(
        self, exchange_code: str, force_refresh: bool = False
    ) -> Result[CachedValue[list[Symbol]]]:
        """Whole symbol set of an already validated exchange, store first."""
        return await self._cache.get(exchange_code, force_refresh=force_refresh)

    async def get_symbols(
        self,
        exchange_code: str,
        page: int = 1,
        page_size: int = 50,
        search: str | None = None,
        type_filter: str | None = None,
        force_refresh: bool = False,
    ) -> Result[SymbolPage]:
        if page < 1:
            return Err(Error.validation("page must be >= 1."))
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            return Err(Error.validation(f"page_size must be between 1 and {MAX_PAGE_SIZE}."))
        if search and len(search) > MAX_SEARCH_LENGTH:
            return Err(Error.validation(f"search must be at most {MAX_SEARCH_LENGTH} characters."))

        validated = await self.validate_exchange(exchange_code)
        if not validated.is_ok:
            return validated
        exchange = validated.value

        result = await self.read_symbols(exchange.code, force_refresh=force_refresh)
        if not result.is_ok:
            return result
        cached = result.value

        matches = filter_symbols(cached.value, search, type_filter)
        start = (page - 1) * page_size
        return Ok(SymbolPage(
            exchange=exchange,
            items=matches[start:start + page_size],
            page=page,
            page_size=page_size,
            total=len(matches),
            source=cached.source,
            ttl_remaining=cached.ttl_remaining,
            fetched_at=cached.fetched_at,
        ))

    async def refresh_symbols(self, exchange_code: str) -> Result[None]:
        """Replace the exchange's stored symbol set with the provider's current list."""
        validated = await self.validate_exchange(exchange_code)
        if not validated.is_ok:
            return validated
        code = validated.value.code

        fetched = await self.provider.get_symbols(code)
        if not fetched.is_ok:
            return fetched

        now = self._clock()
        symbols = self._map(fetched.value, code, now)
        try:
            await self._replace(code, symbols, now)
        except Exception:
            logger.exception("symbols.refresh_failed", exchange=code)
            return Err(Error.internal(f"Failed to store symbols for exchange '{code}'."))

        logger.info("symbols.refreshed", exchange=code, count=len(symbols))
        return Ok(None)
