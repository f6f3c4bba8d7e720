"""API endpoint tests — FastAPI TestClient over memory stores and a fake provider."""
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from marketlens.api.v1.app import app
from marketlens.api.v1.deps import get_bulk_fetch_service, get_exchange_service, get_stock_service, get_symbol_service
from marketlens.core.data.store.memory import MemoryNoDataStore
from marketlens.core.result import Error, ErrorCode
from marketlens.core.services.bulk_fetch import BulkFetchService
from marketlens.core.services.exchanges import ExchangeService
from marketlens.core.services.stocks import StockService
from marketlens.core.services.symbols import SymbolService

DAY = timedelta(hours=24)


@pytest.fixture
def client(provider, exchange_store, symbol_store, quote_store, fundamentals_store, clock):
    no_data = MemoryNoDataStore()
    app.dependency_overrides[get_exchange_service] = lambda: ExchangeService(
        provider, exchange_store, ttl=DAY, clock=clock
    )
    app.dependency_overrides[get_symbol_service] = lambda: SymbolService(
        provider, exchange_store, symbol_store, ttl=DAY, clock=clock
    )
    app.dependency_overrides[get_stock_service] = lambda: StockService(
        provider, symbol_store, quote_store, fundamentals_store,
        quote_ttl=timedelta(minutes=15), fundamentals_ttl=DAY, clock=clock,
    )
    app.dependency_overrides[get_bulk_fetch_service] = lambda: BulkFetchService(
        app.dependency_overrides[get_symbol_service](),
        app.dependency_overrides[get_stock_service](),
        no_data,
        batch_size=100, concurrency=2, batch_pause_seconds=0.0, no_data_ttl=timedelta(days=30), clock=clock,
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health():
    r = TestClient(app).get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.json()["breaker"] in ("closed", "open", "half_open")


class TestExchangeEndpoints:

    def test_list_exchanges_then_cached(self, client, provider):
        first = client.get("/api/v1/exchanges")
        assert first.status_code == 200
        data = first.json()
        assert data["count"] == 2
        assert [e["code"] for e in data["exchanges"]] == ["LSE", "US"]
        assert data["cache"] == {"source": "provider", "ttl_seconds_remaining": 86400}

        second = client.get("/api/v1/exchanges")
        assert second.json()["cache"]["source"] == "cache"
        assert provider.count("exchanges") == 1

    def test_force_refresh(self, client, provider):
        client.get("/api/v1/exchanges")
        r = client.get("/api/v1/exchanges", params={"force_refresh": "true"})
        assert r.json()["cache"]["source"] == "provider"
        assert provider.count("exchanges") == 2

    def test_refresh_exchanges(self, client):
        r = client.post("/api/v1/exchanges/refresh")
        assert r.status_code == 200
        assert r.json() == {"count": 2}

    def test_provider_unavailable_is_503(self, client, provider):
        provider.failures["exchanges"] = Error.provider_unavailable("Provider circuit is open; calls are suspended.")
        r = client.get("/api/v1/exchanges")
        assert r.status_code == 503
        assert r.json() == {
            "error": "Provider circuit is open; calls are suspended.",
            "code": "PROVIDER_UNAVAILABLE",
            "details": {},
        }

    def test_rate_limit_is_429(self, client, provider):
        provider.failures["exchanges"] = Error.provider_rate_limit("Daily API quota exceeded. Try again tomorrow.")
        r = client.get("/api/v1/exchanges")
        assert r.status_code == 429
        assert r.json()["code"] == "PROVIDER_RATE_LIMIT"

    def test_daily_rate_limit_flagged_in_details(self, client, provider):
        provider.failures["exchanges"] = Error.provider_rate_limit(
            "Daily API quota exceeded. Try again tomorrow.", daily_limit=True
        )
        r = client.get("/api/v1/exchanges")
        assert r.status_code == 429
        assert r.json()["details"] == {"daily_limit": True}


class TestSymbolEndpoints:

    def test_symbols_paginated(self, client):
        client.post("/api/v1/exchanges/refresh")
        r = client.get("/api/v1/exchanges/US/symbols", params={"page": 1, "page_size": 2})
        assert r.status_code == 200
        data = r.json()
        assert data["exchange"]["code"] == "US"
        assert data["pagination"] == {"page": 1, "page_size": 2, "total": 3, "has_next": True}
        assert [s["ticker"] for s in data["symbols"]] == ["AAPL", "MSFT"]
        assert data["symbols"][0]["full_symbol"] == "AAPL.NASDAQ"

    def test_symbols_search_and_type(self, client):
        client.post("/api/v1/exchanges/refresh")
        r = client.get("/api/v1/exchanges/US/symbols", params={"q": "apple", "type": "Common Stock"})
        assert [s["ticker"] for s in r.json()["symbols"]] == ["AAPL"]

    def test_unknown_exchange_is_404(self, client, provider):
        r = client.get("/api/v1/exchanges/NOSUCHCODE/symbols")
        assert r.status_code == 404
        assert r.json()["code"] == "BAD_EXCHANGE_CODE"
        assert provider.count("symbols") == 0

    def test_page_size_over_limit_is_422(self, client):
        r = client.get("/api/v1/exchanges/US/symbols", params={"page_size": 501})
        assert r.status_code == 422
        assert r.json()["code"] == "VALIDATION_ERROR"

    def test_refresh_symbols(self, client, provider):
        client.post("/api/v1/exchanges/refresh")
        r = client.post("/api/v1/exchanges/US/symbols/refresh")
        assert r.status_code == 204
        assert provider.count("symbols") == 1

        listed = client.get("/api/v1/exchanges/US/symbols")
        assert listed.json()["cache"]["source"] == "cache"
        assert provider.count("symbols") == 1

    def test_refresh_symbols_bad_code(self, client, provider):
        r = client.post("/api/v1/exchanges/NOSUCHCODE/symbols/refresh")
        assert r.status_code == 404
        assert r.json()["code"] == "BAD_EXCHANGE_CODE"
        assert provider.count("symbols") == 0

    def test_bulk_fetch_fundamentals(self, client, provider):
        client.post("/api/v1/exchanges/refresh")
        provider.fundamentals_failures["SPY"] = Error(ErrorCode.NOT_FOUND, "No fundamentals returned for SPY")

        r = client.post("/api/v1/exchanges/us/symbols/bulk-fetch-fundamentals")

        assert r.status_code == 200
        data = r.json()
        assert data["exchange_code"] == "US"
        assert data["total_symbols"] == 3
        assert data["processed"] == 3
        assert data["successful"] == 2
        assert data["marked_no_data"] == 1
        assert data["daily_limit_hit"] is False

        again = client.post("/api/v1/exchanges/US/symbols/bulk-fetch-fundamentals").json()
        assert again["processed"] == 0
        assert again["skipped_no_data"] == 1
        assert provider.count("fundamentals") == 3

    def test_bulk_fetch_bad_code(self, client, provider):
        r = client.post("/api/v1/exchanges/NOSUCHCODE/symbols/bulk-fetch-fundamentals")
        assert r.status_code == 404
        assert r.json()["code"] == "BAD_EXCHANGE_CODE"
        assert provider.count("fundamentals") == 0

    def test_bulk_fetch_batch_size_validated(self, client):
        r = client.post("/api/v1/exchanges/US/symbols/bulk-fetch-fundamentals", params={"batch_size": 0})
        assert r.status_code == 422
        assert r.json()["code"] == "VALIDATION_ERROR"


class TestStockEndpoints:

    def test_quote(self, client):
        r = client.get("/api/v1/stocks/aapl/quote")
        assert r.status_code == 200
        data = r.json()
        assert data["ticker"] == "AAPL"
        assert data["quote"]["current_price"] == 190.0
        assert data["quote"]["change"] == pytest.approx(2.0)
        assert data["cache"] == {"source": "provider", "ttl_seconds_remaining": 900}

    def test_fundamentals_not_found_is_404(self, client, provider):
        provider.failures["fundamentals"] = Error(ErrorCode.NOT_FOUND, "No fundamentals returned for ZZZZ")
        r = client.get("/api/v1/stocks/ZZZZ/fundamentals")
        assert r.status_code == 404
        assert r.json()["code"] == "NOT_FOUND"

    def test_details_with_partial_data(self, client, provider):
        provider.failures["fundamentals"] = Error.provider_unavailable("Provider circuit is open.")
        r = client.get("/api/v1/stocks/AAPL/details")
        assert r.status_code == 200
        data = r.json()
        assert data["symbol"]["ticker"] == "AAPL"
        assert data["symbol"]["exchange_code"] == "UNKNOWN"
        assert data["quote"]["current_price"] == 190.0
        assert data["quote_cache"]["source"] == "provider"
        assert data["fundamentals"] is None
        assert data["fundamentals_cache"] is None

    def test_details_full(self, client):
        r = client.get("/api/v1/stocks/AAPL/details")
        data = r.json()
        assert data["fundamentals"]["company_name"] == "Apple Inc"
        assert data["fundamentals"]["gross_margins"] == pytest.approx(0.45)
        assert data["fundamentals_cache"]["ttl_seconds_remaining"] == 86400
