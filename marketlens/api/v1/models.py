"""Pydantic response models."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class CacheInfo(BaseModel):
    source: str
    ttl_seconds_remaining: int


# ── Exchanges ────────────────────────────────────────────────────────────


class ExchangeOut(BaseModel):
    code: str
    name: str
    operating_mic: str | None = None
    country: str
    currency: str


class ExchangesResponse(BaseModel):
    exchanges: list[ExchangeOut]
    count: int
    fetched_at: datetime
    cache: CacheInfo


class RefreshResponse(BaseModel):
    count: int


class BulkFetchResponse(BaseModel):
    exchange_code: str
    total_symbols: int
    symbols_without_data: int
    skipped_no_data: int
    processed: int
    successful: int
    failed: int
    marked_no_data: int
    rate_limit_hits: int
    daily_limit_hit: bool
    total_wait_seconds: float
    batches_processed: int
    started_at: datetime
    completed_at: datetime


# ── Symbols ──────────────────────────────────────────────────────────────


class SymbolOut(BaseModel):
    ticker: str
    exchange_code: str
    full_symbol: str
    name: str
    type: str | None = None
    isin: str | None = None
    currency: str | None = None
    is_active: bool = True


class Pagination(BaseModel):
    page: int
    page_size: int
    total: int
    has_next: bool


class SymbolsResponse(BaseModel):
    exchange: ExchangeOut
    pagination: Pagination
    symbols: list[SymbolOut]
    fetched_at: datetime
    cache: CacheInfo


# ── Stocks ───────────────────────────────────────────────────────────────


class QuoteOut(BaseModel):
    current_price: float | None = None
    previous_close: float | None = None
    change: float | None = None
    change_percent: float | None = None
    open: float | None = None
    high: float | None = None
    low: float | None = None
    volume: float | None = None
    average_volume: float | None = None
    last_updated: datetime


class QuoteResponse(BaseModel):
    ticker: str
    quote: QuoteOut
    fetched_at: datetime
    cache: CacheInfo


class FundamentalsOut(BaseModel):
    company_name: str | None = None
    sector: str | None = None
    industry: str | None = None
    description: str | None = None
    website: str | None = None
    logo_url: str | None = None
    market_cap: float | None = None
    enterprise_value: float | None = None
    trailing_pe: float | None = None
    forward_pe: float | None = None
    peg: float | None = None
    price_to_sales: float | None = None
    price_to_book: float | None = None
    enterprise_to_revenue: float | None = None
    enterprise_to_ebitda: float | None = None
    profit_margins: float | None = None
    gross_margins: float | None = None
    operating_margins: float | None = None
    return_on_assets: float | None = None
    return_on_equity: float | None = None
    revenue: float | None = None
    revenue_per_share: float | None = None
    quarterly_revenue_growth: float | None = None
    quarterly_earnings_growth: float | None = None
    total_cash: float | None = None
    total_cash_per_share: float | None = None
    total_debt: float | None = None
    debt_to_equity: float | None = None
    current_ratio: float | None = None
    book_value: float | None = None
    dividend_rate: float | None = None
    dividend_yield: float | None = None
    payout_ratio: float | None = None
    beta: float | None = None
    fifty_two_week_low: float | None = None
    fifty_two_week_high: float | None = None
    last_updated: datetime


class FundamentalsResponse(BaseModel):
    ticker: str
    fundamentals: FundamentalsOut
    fetched_at: datetime
    cache: CacheInfo


class DetailsResponse(BaseModel):
    symbol: SymbolOut
    quote: QuoteOut | None = None
    quote_fetched_at: datetime | None = None
    quote_cache: CacheInfo | None = None
    fundamentals: FundamentalsOut | None = None
    fundamentals_fetched_at: datetime | None = None
    fundamentals_cache: CacheInfo | None = None
    requested_at: datetime


class HealthResponse(BaseModel):
    status: str
    version: str
    breaker: str
