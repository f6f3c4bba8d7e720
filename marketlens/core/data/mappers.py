"""Pure provider-payload → domain translations."""
from datetime import datetime, timezone

from marketlens.core.data.models import Exchange, Fundamentals, Quote, Symbol
from marketlens.core.data.providers.schemas import ExchangeRaw, FundamentalsRaw, QuoteRaw, SymbolRaw


def exchange_from_raw(raw: ExchangeRaw) -> Exchange:
    return Exchange(
        code=raw.code,
        name=raw.name,
        operating_mic=raw.operating_mic,
        country=raw.country,
        currency=raw.currency,
    )


def symbol_from_raw(raw: SymbolRaw, parent_exchange: str) -> Symbol:
    return Symbol(
        ticker=raw.code,
        exchange_code=raw.exchange,
        parent_exchange=parent_exchange,
        name=raw.name,
        type=raw.type,
        isin=raw.isin,
        currency=raw.currency,
        # Active unless the provider explicitly flags a delisting
        is_active=raw.is_delisted is not True,
    )


def quote_from_raw(raw: QuoteRaw, ticker: str, fetched_at: datetime) -> Quote:
    change = None
    if raw.close is not None and raw.previous_close is not None:
        change = raw.close - raw.previous_close

    change_percent = None
    if change is not None and raw.previous_close:
        change_percent = change / raw.previous_close * 100

    last_updated = fetched_at
    if raw.timestamp:
        last_updated = datetime.fromtimestamp(raw.timestamp, tz=timezone.utc)

    return Quote(
        ticker=ticker,
        current_price=raw.close,
        previous_close=raw.previous_close,
        change=change,
        change_percent=change_percent,
        open=raw.open,
        high=raw.high,
        low=raw.low,
        volume=raw.volume,
        average_volume=None,  # not part of the real-time payload
        last_updated=last_updated,
    )


def latest_balance_sheet(raw: FundamentalsRaw) -> dict:
    """Most recent quarterly balance-sheet entry from ``Financials``, or {}."""
    quarterly = (
        ((raw.financials or {}).get("Balance_Sheet") or {}).get("quarterly") or {}
    )
    if not isinstance(quarterly, dict) or not quarterly:
        return {}
    latest = quarterly[max(quarterly)]  # keys are ISO dates
    return latest if isinstance(latest, dict) else {}


def _num(value) -> float | None:
    try:
        return float(value) if value not in (None, "", "NA") else None
    except (TypeError, ValueError):
        return None


def _updated_at(value: str | None, default: datetime) -> datetime:
    if not value:
        return default
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return default
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _ratio(numerator: float | None, denominator: float | None) -> float | None:
    if numerator is None or not denominator:
        return None
    return numerator / denominator


def fundamentals_from_raw(raw: FundamentalsRaw, ticker: str, fetched_at: datetime) -> Fundamentals:
    general = raw.general
    highlights = raw.highlights
    valuation = raw.valuation
    technicals = raw.technicals
    dividends = raw.splits_dividends
    sheet = latest_balance_sheet(raw)

    revenue = highlights.revenue_ttm if highlights else None
    gross_profit = highlights.gross_profit_ttm if highlights else None
    total_cash = _num(sheet.get("cash"))
    total_debt = _num(sheet.get("shortLongTermDebtTotal"))
    equity = _num(sheet.get("totalStockholderEquity"))
    shares = _num(sheet.get("commonStockSharesOutstanding"))

    return Fundamentals(
        ticker=ticker,
        company_name=general.name if general else None,
        sector=general.sector if general else None,
        industry=general.industry if general else None,
        description=general.description if general else None,
        website=general.web_url if general else None,
        logo_url=general.logo_url if general else None,
        market_cap=highlights.market_capitalization if highlights else None,
        enterprise_value=valuation.enterprise_value if valuation else None,
        trailing_pe=(valuation.trailing_pe if valuation else None)
        or (highlights.pe_ratio if highlights else None),
        forward_pe=valuation.forward_pe if valuation else None,
        peg=highlights.peg_ratio if highlights else None,
        price_to_sales=valuation.price_sales_ttm if valuation else None,
        price_to_book=valuation.price_book_mrq if valuation else None,
        enterprise_to_revenue=valuation.enterprise_value_revenue if valuation else None,
        enterprise_to_ebitda=valuation.enterprise_value_ebitda if valuation else None,
        profit_margins=highlights.profit_margin if highlights else None,
        gross_margins=_ratio(gross_profit, revenue),
        operating_margins=highlights.operating_margin_ttm if highlights else None,
        return_on_assets=highlights.return_on_assets_ttm if highlights else None,
        return_on_equity=highlights.return_on_equity_ttm if highlights else None,
        revenue=revenue,
        revenue_per_share=highlights.revenue_per_share_ttm if highlights else None,
        quarterly_revenue_growth=highlights.quarterly_revenue_growth_yoy if highlights else None,
        quarterly_earnings_growth=highlights.quarterly_earnings_growth_yoy if highlights else None,
        total_cash=total_cash,
        total_cash_per_share=_ratio(total_cash, shares),
        total_debt=total_debt,
        debt_to_equity=_ratio(total_debt, equity),
        current_ratio=_ratio(
            _num(sheet.get("totalCurrentAssets")), _num(sheet.get("totalCurrentLiabilities"))
        ),
        book_value=highlights.book_value if highlights else None,
        dividend_rate=(dividends.forward_annual_dividend_rate if dividends else None)
        or (highlights.dividend_share if highlights else None),
        dividend_yield=highlights.dividend_yield if highlights else None,
        payout_ratio=dividends.payout_ratio if dividends else None,
        beta=technicals.beta if technicals else None,
        fifty_two_week_low=technicals.fifty_two_week_low if technicals else None,
        fifty_two_week_high=technicals.fifty_two_week_high if technicals else None,
        last_updated=_updated_at(general.updated_at if general else None, fetched_at),
    )
