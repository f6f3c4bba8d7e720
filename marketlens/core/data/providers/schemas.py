"""Raw EODHD payload shapes.

Field aliases follow the provider's JSON. EODHD reports missing numbers as
the string ``"NA"``; optional and numeric fields coerce those to ``None``
before validation. Identifiers (``Code``, ``Exchange``) are kept verbatim,
since ``NA`` is a real ticker.
"""
from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

MISSING_MARKERS = ("NA", "N/A", "")


def _na_to_none(value: Any) -> Any:
    if isinstance(value, str) and value.strip().upper() in MISSING_MARKERS:
        return None
    return value


def _none_to_empty(value: Any) -> Any:
    return "" if value is None else value


_MISSING = BeforeValidator(_na_to_none)

# Optional values that may arrive as "NA"
Number = Annotated[float | None, _MISSING]
Integer = Annotated[int | None, _MISSING]
Flag = Annotated[bool | None, _MISSING]
OptionalText = Annotated[str | None, _MISSING]
# Display text with an empty-string default; null becomes ""
Text = Annotated[str, BeforeValidator(_none_to_empty)]


class _Raw(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ── Catalog ──────────────────────────────────────────────────────────────


class ExchangeRaw(_Raw):
    code: str = Field(alias="Code")
    name: Text = Field(alias="Name")
    operating_mic: OptionalText = Field(default=None, alias="OperatingMIC")
    country: Text = Field(default="", alias="Country")
    currency: Text = Field(default="", alias="Currency")


class SymbolRaw(_Raw):
    code: str = Field(alias="Code")
    name: Text = Field(default="", alias="Name")
    country: OptionalText = Field(default=None, alias="Country")
    exchange: str = Field(alias="Exchange")
    currency: OptionalText = Field(default=None, alias="Currency")
    type: OptionalText = Field(default=None, alias="Type")
    isin: OptionalText = Field(default=None, alias="Isin")
    is_delisted: Flag = Field(default=None, alias="IsDelisted")


# ── Market data ──────────────────────────────────────────────────────────


class QuoteRaw(_Raw):
    code: str
    timestamp: Integer = None  # unix seconds
    gmtoffset: Integer = None
    open: Number = None
    high: Number = None
    low: Number = None
    close: Number = None
    volume: Number = None
    previous_close: Number = Field(default=None, alias="previousClose")
    change: Number = None
    change_p: Number = None


class GeneralRaw(_Raw):
    code: str | None = Field(default=None, alias="Code")
    type: OptionalText = Field(default=None, alias="Type")
    name: OptionalText = Field(default=None, alias="Name")
    exchange: str | None = Field(default=None, alias="Exchange")
    currency_code: OptionalText = Field(default=None, alias="CurrencyCode")
    country_name: OptionalText = Field(default=None, alias="CountryName")
    isin: OptionalText = Field(default=None, alias="ISIN")
    sector: OptionalText = Field(default=None, alias="Sector")
    industry: OptionalText = Field(default=None, alias="Industry")
    description: OptionalText = Field(default=None, alias="Description")
    web_url: OptionalText = Field(default=None, alias="WebURL")
    logo_url: OptionalText = Field(default=None, alias="LogoURL")
    updated_at: OptionalText = Field(default=None, alias="UpdatedAt")


class HighlightsRaw(_Raw):
    market_capitalization: Number = Field(default=None, alias="MarketCapitalization")
    ebitda: Number = Field(default=None, alias="EBITDA")
    pe_ratio: Number = Field(default=None, alias="PERatio")
    peg_ratio: Number = Field(default=None, alias="PEGRatio")
    book_value: Number = Field(default=None, alias="BookValue")
    dividend_share: Number = Field(default=None, alias="DividendShare")
    dividend_yield: Number = Field(default=None, alias="DividendYield")
    earnings_share: Number = Field(default=None, alias="EarningsShare")
    profit_margin: Number = Field(default=None, alias="ProfitMargin")
    operating_margin_ttm: Number = Field(default=None, alias="OperatingMarginTTM")
    return_on_assets_ttm: Number = Field(default=None, alias="ReturnOnAssetsTTM")
    return_on_equity_ttm: Number = Field(default=None, alias="ReturnOnEquityTTM")
    revenue_ttm: Number = Field(default=None, alias="RevenueTTM")
    revenue_per_share_ttm: Number = Field(default=None, alias="RevenuePerShareTTM")
    quarterly_revenue_growth_yoy: Number = Field(default=None, alias="QuarterlyRevenueGrowthYOY")
    gross_profit_ttm: Number = Field(default=None, alias="GrossProfitTTM")
    quarterly_earnings_growth_yoy: Number = Field(default=None, alias="QuarterlyEarningsGrowthYOY")


class ValuationRaw(_Raw):
    trailing_pe: Number = Field(default=None, alias="TrailingPE")
    forward_pe: Number = Field(default=None, alias="ForwardPE")
    price_sales_ttm: Number = Field(default=None, alias="PriceSalesTTM")
    price_book_mrq: Number = Field(default=None, alias="PriceBookMRQ")
    enterprise_value: Number = Field(default=None, alias="EnterpriseValue")
    enterprise_value_revenue: Number = Field(default=None, alias="EnterpriseValueRevenue")
    enterprise_value_ebitda: Number = Field(default=None, alias="EnterpriseValueEbitda")


class TechnicalsRaw(_Raw):
    beta: Number = Field(default=None, alias="Beta")
    fifty_two_week_high: Number = Field(default=None, alias="52WeekHigh")
    fifty_two_week_low: Number = Field(default=None, alias="52WeekLow")


class SplitsDividendsRaw(_Raw):
    forward_annual_dividend_rate: Number = Field(default=None, alias="ForwardAnnualDividendRate")
    forward_annual_dividend_yield: Number = Field(default=None, alias="ForwardAnnualDividendYield")
    payout_ratio: Number = Field(default=None, alias="PayoutRatio")


class FundamentalsRaw(_Raw):
    # Whole sections come back as "NA" for thinly covered instruments
    general: Annotated[GeneralRaw | None, _MISSING] = Field(default=None, alias="General")
    highlights: Annotated[HighlightsRaw | None, _MISSING] = Field(default=None, alias="Highlights")
    valuation: Annotated[ValuationRaw | None, _MISSING] = Field(default=None, alias="Valuation")
    technicals: Annotated[TechnicalsRaw | None, _MISSING] = Field(default=None, alias="Technicals")
    splits_dividends: Annotated[SplitsDividendsRaw | None, _MISSING] = Field(default=None, alias="SplitsDividends")
    financials: Annotated[dict[str, Any] | None, _MISSING] = Field(default=None, alias="Financials")
