"""Abstract MarketDataProvider — the contract the cache orchestrators consume."""
from abc import ABC, abstractmethod

from marketlens.core.data.providers.schemas import ExchangeRaw, FundamentalsRaw, QuoteRaw, SymbolRaw
from marketlens.core.result import Result


class MarketDataProvider(ABC):

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique key: 'eodhd'"""
        ...

    @abstractmethod
    async def get_exchanges(self) -> Result[list[ExchangeRaw]]:
        ...

    @abstractmethod
    async def get_symbols(self, exchange_code: str) -> Result[list[SymbolRaw]]:
        ...

    @abstractmethod
    async def get_quote(self, ticker: str, exchange_code: str) -> Result[QuoteRaw]:
        ...

    @abstractmethod
    async def get_fundamentals(self, ticker: str, exchange_code: str) -> Result[FundamentalsRaw]:
        """Returns Err(NOT_FOUND) when the provider has no fundamentals for the ticker."""
        ...
