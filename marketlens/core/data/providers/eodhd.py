"""EODHD (eodhd.com) HTTP transport.

Raw calls only: every failure is raised as a ProviderError subclass and
wrapped into a Result one layer up, in ResilientProvider.
"""
import asyncio
import json
import time
from typing import Any
from urllib.parse import quote as url_quote, urljoin

import aiohttp
import structlog
from aiolimiter import AsyncLimiter
from pydantic import TypeAdapter, ValidationError

from marketlens.core.config import settings
from marketlens.core.data.models import UNKNOWN_EXCHANGE
from marketlens.core.data.providers.errors import (
    ProviderAuthError,
    ProviderNotFoundError,
    ProviderPayloadError,
    ProviderRateLimitError,
    ProviderRequestError,
    ProviderServerError,
    ProviderTimeoutError,
    ProviderTransportError,
)
from marketlens.core.data.providers.schemas import ExchangeRaw, FundamentalsRaw, QuoteRaw, SymbolRaw

logger = structlog.get_logger()

EXCHANGES_PATH = "api/exchanges-list/"
SYMBOLS_PATH = "api/exchange-symbol-list/{code}"
QUOTE_PATH = "api/real-time/{instrument}"
FUNDAMENTALS_PATH = "api/fundamentals/{instrument}"

# Body fragments EODHD uses when the daily quota (not the per-minute limit) is spent
DAILY_LIMIT_MARKERS = ("daily", "quota", "limit exceeded", "maximum requests", "per day")

_exchanges_adapter = TypeAdapter(list[ExchangeRaw])
_symbols_adapter = TypeAdapter(list[SymbolRaw])


def instrument_id(ticker: str, exchange_code: str) -> str:
    """``AAPL.US``; a bare ticker when the exchange is unknown (provider default market)."""
    if not exchange_code or exchange_code.upper() == UNKNOWN_EXCHANGE:
        return url_quote(ticker, safe="")
    return f"{url_quote(ticker, safe='')}.{url_quote(exchange_code, safe='')}"


def is_daily_limit(body: str) -> bool:
    lowered = (body or "").lower()
    return any(marker in lowered for marker in DAILY_LIMIT_MARKERS)


def check_status(status: int, body: str, retry_after: str | None = None) -> None:
    """Raise the ProviderError matching a non-2xx HTTP status."""
    if 200 <= status < 300:
        return
    if status == 429:
        if is_daily_limit(body):
            raise ProviderRateLimitError(
                "Daily API quota exceeded. Try again tomorrow.", daily_limit=True
            )
        seconds = float(retry_after) if retry_after and retry_after.isdigit() else 60.0
        raise ProviderRateLimitError(
            f"Rate limit exceeded. Retry after {seconds:.0f} seconds.", retry_after=seconds
        )
    if status in (401, 403):
        raise ProviderAuthError(f"Provider rejected credentials ({status})", status=status)
    if status == 404:
        raise ProviderNotFoundError("Provider has no data for this instrument", status=status)
    if status == 408 or status >= 500:
        raise ProviderServerError(f"Provider returned {status}", status=status)
    raise ProviderRequestError(f"Provider rejected request ({status}): {body[:200]}", status=status)


class EodhdClient:

    def __init__(
        self,
        api_token: str | None = None,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        requests_per_minute: int | None = None,
    ):
        self._api_token = api_token if api_token is not None else settings.eodhd_api_token
        self._base_url = base_url or settings.eodhd_base_url
        self._timeout = aiohttp.ClientTimeout(
            total=timeout_seconds or settings.eodhd_timeout_seconds
        )
        self._limiter = AsyncLimiter(requests_per_minute or settings.provider_requests_per_minute, 60)

    async def exchanges(self) -> list[ExchangeRaw]:
        data = await self._get_json(EXCHANGES_PATH)
        return _parse(_exchanges_adapter, data, EXCHANGES_PATH)

    async def symbols(self, exchange_code: str) -> list[SymbolRaw]:
        endpoint = SYMBOLS_PATH.format(code=url_quote(exchange_code, safe=""))
        data = await self._get_json(endpoint)
        return _parse(_symbols_adapter, data, endpoint)

    async def quote(self, ticker: str, exchange_code: str) -> QuoteRaw:
        endpoint = QUOTE_PATH.format(instrument=instrument_id(ticker, exchange_code))
        data = await self._get_json(endpoint)
        if isinstance(data, list):
            data = data[0] if data else None
        if not data:
            raise ProviderNotFoundError(f"No quote returned for {ticker}")
        return _parse(QuoteRaw, data, endpoint)

    async def fundamentals(self, ticker: str, exchange_code: str) -> FundamentalsRaw:
        endpoint = FUNDAMENTALS_PATH.format(instrument=instrument_id(ticker, exchange_code))
        data = await self._get_json(endpoint)
        # EODHD answers [] / {} for instruments without fundamentals coverage
        if not data:
            raise ProviderNotFoundError(f"No fundamentals returned for {ticker}")
        return _parse(FundamentalsRaw, data, endpoint)

    async def _get_json(self, endpoint: str) -> Any:
        url = urljoin(self._base_url, endpoint)
        params = {"api_token": self._api_token, "fmt": "json"}
        started = time.monotonic()

        try:
            async with self._limiter:
                logger.info("provider.request", endpoint=endpoint)
                async with aiohttp.ClientSession(timeout=self._timeout) as session:
                    async with session.get(url, params=params) as resp:
                        status = resp.status
                        retry_after = resp.headers.get("Retry-After")
                        body = await resp.text()
        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(f"Request timeout: {endpoint}") from e
        except aiohttp.ClientError as e:
            raise ProviderTransportError(f"HTTP request failed: {e}") from e

        elapsed_ms = round((time.monotonic() - started) * 1000)
        if not 200 <= status < 300:
            logger.warning("provider.http_error", endpoint=endpoint, status=status, elapsed_ms=elapsed_ms)
        check_status(status, body, retry_after)

        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            raise ProviderPayloadError("Failed to parse provider response.") from e
        logger.info("provider.ok", endpoint=endpoint, elapsed_ms=elapsed_ms)
        return data


def _parse(model, data: Any, endpoint: str):
    try:
        if isinstance(model, TypeAdapter):
            return model.validate_python(data)
        return model.model_validate(data)
    except ValidationError as e:
        logger.error("provider.malformed_payload", endpoint=endpoint, errors=e.error_count())
        raise ProviderPayloadError("Failed to parse provider response.") from e
