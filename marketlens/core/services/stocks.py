"""Per-ticker quote, fundamentals and the composite details view."""
import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog

from marketlens.core.cache.read_through import CachedValue, Clock, ReadThroughCache, utc_now
from marketlens.core.config import settings
from marketlens.core.data.mappers import fundamentals_from_raw, quote_from_raw
from marketlens.core.data.models import Fundamentals, Quote, Symbol
from marketlens.core.data.providers.base import MarketDataProvider
from marketlens.core.data.store.base import FundamentalsStore, QuoteStore, SymbolStore
from marketlens.core.result import Err, Error, Ok, Result

logger = structlog.get_logger()

# (ticker, exchange_code)
Instrument = tuple[str, str]


@dataclass(frozen=True)
class StockDetails:
    symbol: Symbol
    quote: CachedValue[Quote] | None
    fundamentals: CachedValue[Fundamentals] | None
    requested_at: datetime


def normalize_ticker(ticker: str | None) -> str:
    return (ticker or "").strip().upper()


class StockService:

    def __init__(
        self,
        provider: MarketDataProvider,
        symbols: SymbolStore,
        quotes: QuoteStore,
        fundamentals: FundamentalsStore,
        quote_ttl: timedelta | None = None,
        fundamentals_ttl: timedelta | None = None,
        default_currency: str | None = None,
        clock: Clock = utc_now,
    ):
        self.provider = provider
        self.symbols = symbols
        self.fundamentals = fundamentals
        self.fundamentals_ttl = fundamentals_ttl or settings.fundamentals_ttl
        self.default_currency = default_currency or settings.default_currency
        self._clock = clock
        self._quotes = ReadThroughCache(
            "quote",
            quote_ttl or settings.quotes_ttl,
            load=lambda key: quotes.get(key[0]),
            fetch=lambda key: provider.get_quote(*key),
            map=lambda raw, key, now: quote_from_raw(raw, key[0], now),
            save=lambda _key, value, now: quotes.upsert(value, now),
            clock=clock,
        )
        self._fundamentals = ReadThroughCache(
            "fundamentals",
            self.fundamentals_ttl,
            load=lambda key: fundamentals.get(key[0]),
            fetch=lambda key: provider.get_fundamentals(*key),
            map=lambda raw, key, now: fundamentals_from_raw(raw, key[0], now),
            save=lambda _key, value, now: fundamentals.upsert(value, now),
            clock=clock,
        )

    async def resolve_symbol(self, ticker: str) -> Symbol:
        """Stored symbol for the ticker, or a placeholder on the default market."""
        try:
            symbol = await self.symbols.get_by_ticker(ticker)
        except Exception as exc:
            logger.warning("symbols.lookup_failed", ticker=ticker, error=str(exc))
            symbol = None
        if symbol is None:
            logger.info("symbols.placeholder", ticker=ticker)
            return Symbol.placeholder(ticker, currency=self.default_currency)
        return symbol

    async def _instrument(self, ticker: str) -> Result[Symbol]:
        normalized = normalize_ticker(ticker)
        if not normalized:
            return Err(Error.validation("Ticker is required."))
        return Ok(await self.resolve_symbol(normalized))

    async def get_quote(self, ticker: str, force_refresh: bool = False) -> Result[CachedValue[Quote]]:
        resolved = await self._instrument(ticker)
        if not resolved.is_ok:
            return resolved
        symbol = resolved.value
        return await self._quotes.get((symbol.ticker, symbol.exchange_code), force_refresh=force_refresh)

    async def get_fundamentals(
        self, ticker: str, force_refresh: bool = False
    ) -> Result[CachedValue[Fundamentals]]:
        resolved = await self._instrument(ticker)
        if not resolved.is_ok:
            return resolved
        symbol = resolved.value
        return await self._fundamentals.get((symbol.ticker, symbol.exchange_code), force_refresh=force_refresh)

    async def get_symbol_fundamentals(
        self, symbol: Symbol, force_refresh: bool = False
    ) -> Result[CachedValue[Fundamentals]]:
        """Fundamentals for a symbol already taken from an exchange listing."""
        return await self._fundamentals.get((symbol.ticker, symbol.exchange_code), force_refresh=force_refresh)

    async def get_details(self, ticker: str, force_refresh: bool = False) -> Result[StockDetails]:
        """Symbol plus whichever of quote / fundamentals could be resolved."""
        requested_at = self._clock()
        resolved = await self._instrument(ticker)
        if not resolved.is_ok:
            return resolved
        symbol = resolved.value
        key: Instrument = (symbol.ticker, symbol.exchange_code)

        quote, fundamentals = await asyncio.gather(
            self._quotes.get(key, force_refresh=force_refresh),
            self._fundamentals.get(key, force_refresh=force_refresh),
        )
        return Ok(StockDetails(
            symbol=symbol,
            quote=self._part(quote, "quote", symbol),
            fundamentals=self._part(fundamentals, "fundamentals", symbol),
            requested_at=requested_at,
        ))

    @staticmethod
    def _part(result: Result, part: str, symbol: Symbol):
        if result.is_ok:
            return result.value
        logger.warning(
            "details.part_failed",
            part=part,
            ticker=symbol.ticker,
            code=result.error.code.value,
            error=result.error.message,
        )
        return None
