"""Domain records -> response models."""
from dataclasses import asdict

from marketlens.api.v1.models import (
    BulkFetchResponse,
    CacheInfo,
    DetailsResponse,
    ExchangeOut,
    ExchangesResponse,
    FundamentalsOut,
    FundamentalsResponse,
    Pagination,
    QuoteOut,
    QuoteResponse,
    SymbolOut,
    SymbolsResponse,
)
from marketlens.core.cache.read_through import CachedValue
from marketlens.core.data.models import Exchange, Fundamentals, Quote, Symbol
from marketlens.core.services.bulk_fetch import BulkFetchReport
from marketlens.core.services.stocks import StockDetails
from marketlens.core.services.symbols import SymbolPage


def cache_info(cached: CachedValue) -> CacheInfo:
    return CacheInfo(source=cached.source.value, ttl_seconds_remaining=cached.ttl_remaining)


def exchange_out(exchange: Exchange) -> ExchangeOut:
    return ExchangeOut(**asdict(exchange))


def symbol_out(symbol: Symbol) -> SymbolOut:
    data = asdict(symbol)
    data.pop("parent_exchange")
    return SymbolOut(**data, full_symbol=symbol.full_symbol)


def quote_out(quote: Quote) -> QuoteOut:
    data = asdict(quote)
    data.pop("ticker")
    return QuoteOut(**data)


def fundamentals_out(fundamentals: Fundamentals) -> FundamentalsOut:
    data = asdict(fundamentals)
    data.pop("ticker")
    return FundamentalsOut(**data)


def exchanges_response(cached: CachedValue[list[Exchange]]) -> ExchangesResponse:
    return ExchangesResponse(
        exchanges=[exchange_out(e) for e in cached.value],
        count=len(cached.value),
        fetched_at=cached.fetched_at,
        cache=cache_info(cached),
    )


def symbols_response(page: SymbolPage) -> SymbolsResponse:
    return SymbolsResponse(
        exchange=exchange_out(page.exchange),
        pagination=Pagination(
            page=page.page, page_size=page.page_size, total=page.total, has_next=page.has_next
        ),
        symbols=[symbol_out(s) for s in page.items],
        fetched_at=page.fetched_at,
        cache=CacheInfo(source=page.source.value, ttl_seconds_remaining=page.ttl_remaining),
    )


def quote_response(cached: CachedValue[Quote]) -> QuoteResponse:
    return QuoteResponse(
        ticker=cached.value.ticker,
        quote=quote_out(cached.value),
        fetched_at=cached.fetched_at,
        cache=cache_info(cached),
    )


def fundamentals_response(cached: CachedValue[Fundamentals]) -> FundamentalsResponse:
    return FundamentalsResponse(
        ticker=cached.value.ticker,
        fundamentals=fundamentals_out(cached.value),
        fetched_at=cached.fetched_at,
        cache=cache_info(cached),
    )


def details_response(details: StockDetails) -> DetailsResponse:
    quote, fundamentals = details.quote, details.fundamentals
    return DetailsResponse(
        symbol=symbol_out(details.symbol),
        quote=quote_out(quote.value) if quote else None,
        quote_fetched_at=quote.fetched_at if quote else None,
        quote_cache=cache_info(quote) if quote else None,
        fundamentals=fundamentals_out(fundamentals.value) if fundamentals else None,
        fundamentals_fetched_at=fundamentals.fetched_at if fundamentals else None,
        fundamentals_cache=cache_info(fundamentals) if fundamentals else None,
        requested_at=details.requested_at,
    )


def bulk_fetch_response(report: BulkFetchReport) -> BulkFetchResponse:
    return BulkFetchResponse(**asdict(report))
