"""Domain records held in the store and served to callers."""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Generic, TypeVar

T = TypeVar("T")

UNKNOWN_EXCHANGE = "UNKNOWN"


@dataclass(frozen=True)
class Exchange:
    code: str
    name: str
    country: str
    currency: str
    operating_mic: str | None = None


@dataclass(frozen=True)
class Symbol:
    ticker: str
    exchange_code: str
    parent_exchange: str
    name: str
    type: str | None = None
    isin: str | None = None
    currency: str | None = None
    is_active: bool = True

    @property
    def full_symbol(self) -> str:
        return f"{self.ticker}.{self.exchange_code}"

    @classmethod
    def placeholder(cls, ticker: str, currency: str = "USD") -> Symbol:
        """Minimal record used when the ticker is not in the store."""
        return cls(
            ticker=ticker,
            exchange_code=UNKNOWN_EXCHANGE,
            parent_exchange=UNKNOWN_EXCHANGE,
            name=ticker,
            type="Common Stock",
            currency=currency,
            is_active=True,
        )


@dataclass(frozen=True)
class Quote:
    ticker: str
    last_updated: datetime
    current_price: float | None = None
    previous_close: float | None = None
    change: float | None = None
    change_percent: float | None = None
    open: float | None = None
    high: float | None = None
    low: float | None = None
    volume: float | None = None
    average_volume: float | None = None


@dataclass(frozen=True)
class Fundamentals:
    ticker: str
    last_updated: datetime
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


@dataclass(frozen=True)
class CacheRecord(Generic[T]):
    """A stored value plus the instant of its last successful provider fetch."""

    value: T
    fetched_at: datetime

    def ttl_remaining(self, now: datetime, ttl: timedelta) -> int:
        """Whole seconds until expiry; <= 0 means stale."""
        return math.floor((self.fetched_at + ttl - now).total_seconds())

    def is_fresh(self, now: datetime, ttl: timedelta) -> bool:
        return self.ttl_remaining(now, ttl) > 0


@dataclass(frozen=True)
class NoDataMarker:
    """An instrument the provider had no fundamentals for, skipped until ``expires_at``."""

    ticker: str
    exchange_code: str
    failure_count: int
    first_failed_at: datetime
    last_attempted_at: datetime
    expires_at: datetime
    last_error: str | None = None

    def is_active(self, now: datetime) -> bool:
        return now < self.expires_at
