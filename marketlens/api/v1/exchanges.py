"""Exchange and symbol endpoints (store-first, provider on miss)."""
from fastapi import APIRouter, Depends, Query, Response

from marketlens.api.v1.deps import get_bulk_fetch_service, get_exchange_service, get_symbol_service
from marketlens.api.v1.errors import unwrap
from marketlens.api.v1.mappers import bulk_fetch_response, exchanges_response, symbols_response
from marketlens.api.v1.models import BulkFetchResponse, ExchangesResponse, RefreshResponse, SymbolsResponse
from marketlens.core.services.bulk_fetch import MAX_BATCH_SIZE, BulkFetchService
from marketlens.core.services.exchanges import ExchangeService
from marketlens.core.services.symbols import MAX_PAGE_SIZE, MAX_SEARCH_LENGTH, SymbolService

router = APIRouter(tags=["Exchanges"])


@router.get("/exchanges", response_model=ExchangesResponse)
async def list_exchanges(
    force_refresh: bool = Query(False),
    service: ExchangeService = Depends(get_exchange_service),
):
    """List all exchanges known to the provider."""
    return exchanges_response(unwrap(await service.get_exchanges(force_refresh=force_refresh)))


@router.post("/exchanges/refresh", response_model=RefreshResponse)
async def refresh_exchanges(service: ExchangeService = Depends(get_exchange_service)):
    """Re-fetch the exchange list from the provider."""
    return RefreshResponse(count=unwrap(await service.refresh_exchanges()))


@router.get("/exchanges/{code}/symbols", response_model=SymbolsResponse)
async def list_symbols(
    code: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=MAX_PAGE_SIZE),
    q: str | None = Query(None, max_length=MAX_SEARCH_LENGTH),
    type: str | None = Query(None),
    force_refresh: bool = Query(False),
    service: SymbolService = Depends(get_symbol_service),
):
    """Paginated symbols for an exchange, optionally filtered by search text and type."""
    result = await service.get_symbols(
        code, page=page, page_size=page_size, search=q, type_filter=type, force_refresh=force_refresh
    )
    return symbols_response(unwrap(result))


@router.post("/exchanges/{code}/symbols/refresh", status_code=204)
async def refresh_symbols(code: str, service: SymbolService = Depends(get_symbol_service)):
    """Replace the stored symbol set for an exchange with the provider's list."""
    unwrap(await service.refresh_symbols(code))
    return Response(status_code=204)


@router.post("/exchanges/{code}/symbols/bulk-fetch-fundamentals", response_model=BulkFetchResponse)
async def bulk_fetch_fundamentals(
    code: str,
    batch_size: int | None = Query(None, ge=1, le=MAX_BATCH_SIZE),
    service: BulkFetchService = Depends(get_bulk_fetch_service),
):
    """Fetch fundamentals for every symbol of the exchange that has none cached."""
    return bulk_fetch_response(unwrap(await service.bulk_fetch_fundamentals(code, batch_size=batch_size)))
