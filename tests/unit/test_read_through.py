"""Read-through cache: freshness gate, provenance and write-back isolation."""
from datetime import timedelta

import pytest

from marketlens.core.cache.read_through import CacheSource, ReadThroughCache
from marketlens.core.data.mappers import quote_from_raw
from marketlens.core.data.models import Quote
from marketlens.core.result import Error, ErrorCode

TTL = timedelta(hours=24)


def make_cache(provider, store, clock, ttl=TTL):
    return ReadThroughCache(
        "quote",
        ttl,
        load=lambda key: store.get(key[0]),
        fetch=lambda key: provider.get_quote(*key),
        map=lambda raw, key, now: quote_from_raw(raw, key[0], now),
        save=lambda _key, value, now: store.upsert(value, now),
        clock=clock,
    )


KEY = ("AAPL", "US")


class TestFreshnessGate:

    @pytest.mark.asyncio
    async def test_fresh_record_served_from_store(self, provider, quote_store, clock):
        t0 = clock.now
        await quote_store.upsert(Quote(ticker="AAPL", last_updated=t0, current_price=150.0), t0)
        cache = make_cache(provider, quote_store, clock)

        clock.advance(hours=23, minutes=59)
        result = await cache.get(KEY)

        assert result.is_ok
        assert result.value.source == CacheSource.CACHE
        assert result.value.ttl_remaining == 60
        assert result.value.value.current_price == 150.0
        assert result.value.fetched_at == t0
        assert provider.count("quote") == 0

    @pytest.mark.asyncio
    async def test_stale_record_refetched(self, provider, quote_store, clock):
        t0 = clock.now
        await quote_store.upsert(Quote(ticker="AAPL", last_updated=t0, current_price=150.0), t0)
        cache = make_cache(provider, quote_store, clock)

        clock.advance(hours=24, minutes=1)
        result = await cache.get(KEY)

        assert result.is_ok
        assert result.value.source == CacheSource.PROVIDER
        assert result.value.ttl_remaining == int(TTL.total_seconds())
        assert result.value.value.current_price == 190.0
        assert provider.count("quote") == 1

        stored = await quote_store.get("AAPL")
        assert stored.fetched_at == clock.now
        assert stored.value.current_price == 190.0

    @pytest.mark.asyncio
    async def test_exact_expiry_is_stale(self, provider, quote_store, clock):
        t0 = clock.now
        await quote_store.upsert(Quote(ticker="AAPL", last_updated=t0), t0)
        cache = make_cache(provider, quote_store, clock)

        clock.advance(hours=24)
        result = await cache.get(KEY)
        assert result.value.source == CacheSource.PROVIDER

    @pytest.mark.asyncio
    async def test_repeated_reads_hit_provider_once(self, provider, quote_store, clock):
        cache = make_cache(provider, quote_store, clock)

        first = await cache.get(KEY)
        clock.advance(minutes=5)
        second = await cache.get(KEY)
        third = await cache.get(KEY)

        assert first.value.source == CacheSource.PROVIDER
        assert second.value.source == CacheSource.CACHE
        assert third.value.ttl_remaining == int(TTL.total_seconds()) - 300
        assert provider.count("quote") == 1


class TestForceRefresh:

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_fresh_record(self, provider, quote_store, clock):
        t0 = clock.now
        await quote_store.upsert(Quote(ticker="AAPL", last_updated=t0, current_price=150.0), t0)
        cache = make_cache(provider, quote_store, clock)

        clock.advance(minutes=1)
        result = await cache.get(KEY, force_refresh=True)

        assert result.value.source == CacheSource.PROVIDER
        assert provider.count("quote") == 1
        stored = await quote_store.get("AAPL")
        assert stored.fetched_at == clock.now
        assert stored.value.current_price == 190.0


class TestFailureHandling:

    @pytest.mark.asyncio
    async def test_provider_failure_returned_verbatim(self, provider, quote_store, clock):
        error = Error.provider_unavailable("Provider circuit is open; calls are suspended.")
        provider.failures["quote"] = error
        cache = make_cache(provider, quote_store, clock)

        result = await cache.get(KEY)

        assert not result.is_ok
        assert result.error == error

    @pytest.mark.asyncio
    async def test_provider_failure_leaves_prior_record(self, provider, quote_store, clock):
        t0 = clock.now
        await quote_store.upsert(Quote(ticker="AAPL", last_updated=t0, current_price=150.0), t0)
        provider.failures["quote"] = Error.provider_rate_limit("Rate limit exceeded.")
        cache = make_cache(provider, quote_store, clock)

        clock.advance(hours=25)
        result = await cache.get(KEY)

        assert result.error.code == ErrorCode.PROVIDER_RATE_LIMIT
        stored = await quote_store.get("AAPL")
        assert stored.fetched_at == t0
        assert stored.value.current_price == 150.0

    @pytest.mark.asyncio
    async def test_write_failure_still_returns_value(self, provider, broken_quote_store, clock):
        cache = make_cache(provider, broken_quote_store, clock)

        result = await cache.get(KEY)

        assert result.is_ok
        assert result.value.source == CacheSource.PROVIDER
        assert broken_quote_store.write_attempts == 1

        # Nothing was stored, so the next read misses again
        again = await cache.get(KEY)
        assert again.value.source == CacheSource.PROVIDER
        assert provider.count("quote") == 2

    @pytest.mark.asyncio
    async def test_read_failure_treated_as_miss(self, provider, broken_quote_store, clock):
        broken_quote_store.fail_reads = True
        cache = make_cache(provider, broken_quote_store, clock)

        result = await cache.get(KEY)

        assert result.is_ok
        assert result.value.source == CacheSource.PROVIDER
        assert provider.count("quote") == 1
