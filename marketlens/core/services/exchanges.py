"""Exchange list — read-through over the exchange store."""
from datetime import datetime, timedelta

from marketlens.core.cache.read_through import CachedValue, Clock, ReadThroughCache, utc_now
from marketlens.core.config import settings
from marketlens.core.data.mappers import exchange_from_raw
from marketlens.core.data.models import Exchange
from marketlens.core.data.providers.base import MarketDataProvider
from marketlens.core.data.providers.schemas import ExchangeRaw
from marketlens.core.data.store.base import ExchangeStore
from marketlens.core.result import Ok, Result

ALL = "all"


class ExchangeService:

    def __init__(
        self,
        provider: MarketDataProvider,
        store: ExchangeStore,
        ttl: timedelta | None = None,
        clock: Clock = utc_now,
    ):
        self.provider = provider
        self.store = store
        self.ttl = ttl or settings.exchanges_ttl
        self._cache = ReadThroughCache(
            "exchanges",
            self.ttl,
            load=lambda _: store.get_all(),
            fetch=lambda _: provider.get_exchanges(),
            map=self._map,
            save=self._save,
            clock=clock,
        )

    @staticmethod
    def _map(raws: list[ExchangeRaw], _key: str, _now: datetime) -> list[Exchange]:
        return sorted((exchange_from_raw(r) for r in raws), key=lambda e: e.code)

    async def _save(self, _key: str, exchanges: list[Exchange], fetched_at: datetime) -> None:
        await self.store.upsert_many(exchanges, fetched_at, self.ttl)

    async def get_exchanges(self, force_refresh: bool = False) -> Result[CachedValue[list[Exchange]]]:
        return await self._cache.get(ALL, force_refresh=force_refresh)

    async def refresh_exchanges(self) -> Result[int]:
        """Force a provider fetch of the exchange list; returns the refreshed count."""
        result = await self._cache.get(ALL, force_refresh=True)
        if not result.is_ok:
            return result
        return Ok(len(result.value.value))
