"""Per-ticker quote, fundamentals and details endpoints."""
from fastapi import APIRouter, Depends, Query

from marketlens.api.v1.deps import get_stock_service
from marketlens.api.v1.errors import unwrap
from marketlens.api.v1.mappers import details_response, fundamentals_response, quote_response
from marketlens.api.v1.models import DetailsResponse, FundamentalsResponse, QuoteResponse
from marketlens.core.services.stocks import StockService

router = APIRouter(tags=["Stocks"])


@router.get("/stocks/{ticker}/quote", response_model=QuoteResponse)
async def get_quote(
    ticker: str,
    force_refresh: bool = Query(False),
    service: StockService = Depends(get_stock_service),
):
    return quote_response(unwrap(await service.get_quote(ticker, force_refresh=force_refresh)))


@router.get("/stocks/{ticker}/fundamentals", response_model=FundamentalsResponse)
async def get_fundamentals(
    ticker: str,
    force_refresh: bool = Query(False),
    service: StockService = Depends(get_stock_service),
):
    return fundamentals_response(unwrap(await service.get_fundamentals(ticker, force_refresh=force_refresh)))


@router.get("/stocks/{ticker}/details", response_model=DetailsResponse)
async def get_details(
    ticker: str,
    force_refresh: bool = Query(False),
    service: StockService = Depends(get_stock_service),
):
    """Symbol with quote and fundamentals; either part is null when it could not be resolved."""
    return details_response(unwrap(await service.get_details(ticker, force_refresh=force_refresh)))
