"""EodhdClient transport against a stubbed aiohttp session."""
import asyncio
import json

import aiohttp
import pytest

from marketlens.core.data.providers import eodhd
from marketlens.core.data.providers.eodhd import EodhdClient
from marketlens.core.data.providers.errors import (
    ProviderNotFoundError,
    ProviderPayloadError,
    ProviderRateLimitError,
    ProviderServerError,
    ProviderTimeoutError,
    ProviderTransportError,
)
from marketlens.core.data.providers.resilience import CircuitBreaker, ResiliencePolicy, RetryPolicy
from marketlens.core.data.providers.resilient import ResilientProvider
from marketlens.core.result import ErrorCode


class FakeResponse:

    def __init__(self, status=200, body="", headers=None, error=None):
        self.status = status
        self.headers = headers or {}
        self._body = body if isinstance(body, str) else json.dumps(body)
        self._error = error

    async def __aenter__(self):
        if self._error is not None:
            raise self._error
        return self

    async def __aexit__(self, *exc):
        return False

    async def text(self):
        return self._body


class FakeSession:
    """Stands in for aiohttp.ClientSession; answers every GET with ``response``."""

    def __init__(self, response: FakeResponse):
        self.response = response
        self.requests: list[tuple[str, dict]] = []

    def __call__(self, *args, **kwargs):
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def get(self, url, params=None):
        self.requests.append((url, params))
        return self.response


@pytest.fixture
def client():
    return EodhdClient(api_token="demo", base_url="https://eodhd.test/", timeout_seconds=5, requests_per_minute=600)


@pytest.fixture
def respond(monkeypatch):
    def install(*args, **kwargs) -> FakeSession:
        session = FakeSession(FakeResponse(*args, **kwargs))
        monkeypatch.setattr(eodhd.aiohttp, "ClientSession", session)
        return session
    return install


class TestCatalogPayloads:

    @pytest.mark.asyncio
    async def test_exchanges_request_and_empty_strings(self, client, respond):
        session = respond(body=[
            {"Code": "US", "Name": "USA Stocks", "OperatingMIC": "XNAS, XNYS", "Country": "USA", "Currency": "USD"},
            {"Code": "TO", "Name": "Toronto Exchange", "OperatingMIC": "", "Country": "", "Currency": "CAD"},
        ])

        exchanges = await client.exchanges()

        assert session.requests == [
            ("https://eodhd.test/api/exchanges-list/", {"api_token": "demo", "fmt": "json"})
        ]
        assert [e.code for e in exchanges] == ["US", "TO"]
        assert exchanges[1].operating_mic is None
        assert exchanges[1].country == ""

    @pytest.mark.asyncio
    async def test_symbols_keep_na_ticker_and_empty_name(self, client, respond):
        session = respond(body=[
            {"Code": "RY", "Name": "Royal Bank of Canada", "Exchange": "TO", "Type": "Common Stock",
             "Currency": "CAD", "Isin": "CA7800871021"},
            {"Code": "NA", "Name": "National Bank of Canada", "Exchange": "TO", "Type": "Common Stock",
             "Currency": "CAD", "Isin": "NA"},
            {"Code": "XYZ", "Name": "", "Exchange": "TO", "Type": "", "Currency": "CAD", "Isin": None},
            {"Code": "ABC", "Name": None, "Exchange": "TO"},
        ])

        symbols = await client.symbols("TO")

        assert session.requests[0][0] == "https://eodhd.test/api/exchange-symbol-list/TO"
        assert [s.code for s in symbols] == ["RY", "NA", "XYZ", "ABC"]
        assert symbols[1].name == "National Bank of Canada"
        assert symbols[1].isin is None
        assert symbols[2].name == ""
        assert symbols[2].type is None
        assert symbols[3].name == ""


class TestInstrumentPayloads:

    @pytest.mark.asyncio
    async def test_quote_list_body_and_na_numbers(self, client, respond):
        session = respond(body=[{"code": "AAPL.US", "timestamp": 1767614400, "close": 190.0,
                                 "previousClose": "NA", "volume": "NA"}])

        quote = await client.quote("AAPL", "US")

        assert session.requests[0][0] == "https://eodhd.test/api/real-time/AAPL.US"
        assert quote.close == 190.0
        assert quote.previous_close is None
        assert quote.volume is None

    @pytest.mark.asyncio
    async def test_empty_quote_list_is_not_found(self, client, respond):
        respond(body=[])
        with pytest.raises(ProviderNotFoundError):
            await client.quote("ZZZZ", "US")

    @pytest.mark.asyncio
    async def test_empty_fundamentals_is_not_found(self, client, respond):
        respond(body={})
        with pytest.raises(ProviderNotFoundError):
            await client.fundamentals("ZZZZ", "US")

    @pytest.mark.asyncio
    async def test_fundamentals_na_sections(self, client, respond):
        respond(body={"General": {"Code": "NA", "Name": "National Bank of Canada"},
                      "Highlights": "NA", "Technicals": {"Beta": "NA"}})

        raw = await client.fundamentals("NA", "TO")

        assert raw.general.code == "NA"
        assert raw.highlights is None
        assert raw.technicals.beta is None

    @pytest.mark.asyncio
    async def test_placeholder_exchange_uses_bare_ticker(self, client, respond):
        session = respond(body={"General": {"Name": "Tesla"}})
        await client.fundamentals("TSLA", "UNKNOWN")
        assert session.requests[0][0] == "https://eodhd.test/api/fundamentals/TSLA"


class TestTransportFailures:

    @pytest.mark.asyncio
    async def test_timeout(self, client, respond):
        respond(error=asyncio.TimeoutError())
        with pytest.raises(ProviderTimeoutError) as exc_info:
            await client.exchanges()
        assert exc_info.value.transient

    @pytest.mark.asyncio
    async def test_client_error(self, client, respond):
        respond(error=aiohttp.ClientConnectionError("connection refused"))
        with pytest.raises(ProviderTransportError) as exc_info:
            await client.exchanges()
        assert exc_info.value.transient

    @pytest.mark.asyncio
    async def test_non_json_body(self, client, respond):
        respond(body="<html>maintenance</html>")
        with pytest.raises(ProviderPayloadError) as exc_info:
            await client.exchanges()
        assert not exc_info.value.transient

    @pytest.mark.asyncio
    async def test_wrong_shape(self, client, respond):
        respond(body=[{"Name": "no code"}])
        with pytest.raises(ProviderPayloadError):
            await client.exchanges()

    @pytest.mark.asyncio
    async def test_server_error(self, client, respond):
        respond(status=502, body="Bad Gateway")
        with pytest.raises(ProviderServerError):
            await client.exchanges()

    @pytest.mark.asyncio
    async def test_daily_quota(self, client, respond):
        respond(status=429, body="You have exceeded your daily API requests limit")
        with pytest.raises(ProviderRateLimitError) as exc_info:
            await client.exchanges()
        assert exc_info.value.daily_limit


class NoSleep:

    async def __call__(self, seconds: float) -> None:
        return None


def resilient(client) -> ResilientProvider:
    policy = ResiliencePolicy(RetryPolicy(0, 2.0), CircuitBreaker(5, 30.0), sleep=NoSleep())
    return ResilientProvider(client, policy)


class TestResilientMapping:

    @pytest.mark.asyncio
    async def test_empty_fundamentals_become_not_found(self, client, respond):
        respond(body={})
        result = await resilient(client).get_fundamentals("ZZZZ", "US")
        assert result.error.code == ErrorCode.NOT_FOUND

    @pytest.mark.asyncio
    async def test_timeout_becomes_unavailable(self, client, respond):
        respond(error=asyncio.TimeoutError())
        result = await resilient(client).get_exchanges()
        assert result.error.code == ErrorCode.PROVIDER_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_daily_quota_flagged(self, client, respond):
        respond(status=429, body="Daily quota reached")
        result = await resilient(client).get_exchanges()
        assert result.error.code == ErrorCode.PROVIDER_RATE_LIMIT
        assert result.error.is_daily_limit

    @pytest.mark.asyncio
    async def test_symbol_list_with_na_ticker_is_ok(self, client, respond):
        respond(body=[{"Code": "NA", "Name": "National Bank of Canada", "Exchange": "TO"}])
        result = await resilient(client).get_symbols("TO")
        assert result.is_ok
        assert result.value[0].code == "NA"
