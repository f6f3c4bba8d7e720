"""ResilientProvider — wraps the EODHD transport with retry + circuit breaker
and translates every provider failure into the closed ErrorCode taxonomy."""
from typing import Awaitable, Callable, TypeVar

import structlog

from marketlens.core.data.providers.base import MarketDataProvider
from marketlens.core.data.providers.eodhd import EodhdClient
from marketlens.core.data.providers.errors import (
    ProviderAuthError,
    ProviderError,
    ProviderNotFoundError,
    ProviderPayloadError,
    ProviderRateLimitError,
    ProviderRequestError,
)
from marketlens.core.data.providers.resilience import ResiliencePolicy
from marketlens.core.data.providers.schemas import ExchangeRaw, FundamentalsRaw, QuoteRaw, SymbolRaw
from marketlens.core.result import Err, Error, ErrorCode, Ok, Result

logger = structlog.get_logger()

T = TypeVar("T")


def to_error(exc: ProviderError) -> Error:
    """Map a provider failure signal onto the closed taxonomy."""
    if isinstance(exc, ProviderRateLimitError):
        return Error.provider_rate_limit(str(exc), daily_limit=exc.daily_limit)
    if isinstance(exc, ProviderNotFoundError):
        return Error(ErrorCode.NOT_FOUND, str(exc))
    if isinstance(exc, ProviderRequestError):
        return Error.validation(str(exc))
    if isinstance(exc, ProviderAuthError):
        return Error.provider_unavailable("Provider authentication failed.")
    if isinstance(exc, ProviderPayloadError):
        return Error.provider_unavailable("Failed to parse provider response.")
    return Error.provider_unavailable(str(exc))


class ResilientProvider(MarketDataProvider):
    """Decorator that applies ResiliencePolicy to each transport call."""

    def __init__(self, client: EodhdClient, policy: ResiliencePolicy | None = None):
        self._client = client
        self._policy = policy or ResiliencePolicy()

    @property
    def name(self) -> str:
        return "eodhd"

    @property
    def policy(self) -> ResiliencePolicy:
        return self._policy

    async def get_exchanges(self) -> Result[list[ExchangeRaw]]:
        return await self._call("exchanges", self._client.exchanges)

    async def get_symbols(self, exchange_code: str) -> Result[list[SymbolRaw]]:
        return await self._call("symbols", lambda: self._client.symbols(exchange_code))

    async def get_quote(self, ticker: str, exchange_code: str) -> Result[QuoteRaw]:
        return await self._call("quote", lambda: self._client.quote(ticker, exchange_code))

    async def get_fundamentals(self, ticker: str, exchange_code: str) -> Result[FundamentalsRaw]:
        return await self._call("fundamentals", lambda: self._client.fundamentals(ticker, exchange_code))

    async def _call(self, operation: str, call: Callable[[], Awaitable[T]]) -> Result[T]:
        try:
            return Ok(await self._policy.execute(call, operation=operation))
        except ProviderError as e:
            error = to_error(e)
            logger.warning("provider.failed", operation=operation, code=error.code.value, error=error.message)
            return Err(error)
        except Exception as e:
            logger.exception("provider.unexpected_error", operation=operation)
            return Err(Error.internal(f"Unexpected error: {e}"))
