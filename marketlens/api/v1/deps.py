"""Per-request service construction over the shared provider and stores."""
from marketlens.core.data import get_provider, get_stores
from marketlens.core.services.bulk_fetch import BulkFetchService
from marketlens.core.services.exchanges import ExchangeService
from marketlens.core.services.stocks import StockService
from marketlens.core.services.symbols import SymbolService


def get_exchange_service() -> ExchangeService:
    return ExchangeService(get_provider(), get_stores().exchanges)


def get_symbol_service() -> SymbolService:
    stores = get_stores()
    return SymbolService(get_provider(), stores.exchanges, stores.symbols)


def get_stock_service() -> StockService:
    stores = get_stores()
    return StockService(get_provider(), stores.symbols, stores.quotes, stores.fundamentals)


def get_bulk_fetch_service() -> BulkFetchService:
    return BulkFetchService(get_symbol_service(), get_stock_service(), get_stores().no_data)
