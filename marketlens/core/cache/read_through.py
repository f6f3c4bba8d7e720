"""ReadThroughCache — store-first access to a single provider-backed resource.

A fresh stored record is served without touching the provider. On a miss
(absent, stale, unreadable, or a forced refresh) the provider is called, the
payload mapped, and the result written back on a best-effort basis: a failed
write is logged and never changes what the caller receives.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Awaitable, Callable, Generic, TypeVar

import structlog

from marketlens.core.data.models import CacheRecord
from marketlens.core.result import Err, Error, ErrorCode, Ok, Result

logger = structlog.get_logger()

K = TypeVar("K")
R = TypeVar("R")
T = TypeVar("T")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CacheSource(str, Enum):
    CACHE = "cache"
    PROVIDER = "provider"


@dataclass(frozen=True)
class CachedValue(Generic[T]):
    value: T
    source: CacheSource
    ttl_remaining: int
    fetched_at: datetime


class ReadThroughCache(Generic[K, R, T]):
    """Serve ``T`` keyed by ``K`` from a store, falling back to a provider call.

    ``load(key)`` reads the stored record, ``fetch(key)`` calls the provider
    and returns a ``Result`` of the raw payload ``R``, ``map(raw, key, now)``
    builds the domain value and ``save(key, value, now)`` writes it back.
    """

    def __init__(
        self,
        resource: str,
        ttl: timedelta,
        load: Callable[[K], Awaitable[CacheRecord[T] | None]],
        fetch: Callable[[K], Awaitable[Result[R]]],
        map: Callable[[R, K, datetime], T],
        save: Callable[[K, T, datetime], Awaitable[None]],
        clock: Clock = utc_now,
    ):
        self.resource = resource
        self.ttl = ttl
        self._load = load
        self._fetch = fetch
        self._map = map
        self._save = save
        self._clock = clock

    async def get(self, key: K, force_refresh: bool = False) -> Result[CachedValue[T]]:
        if not force_refresh:
            record = await self._read(key)
            if record is not None:
                now = self._clock()
                remaining = record.ttl_remaining(now, self.ttl)
                if remaining > 0:
                    logger.info("cache.hit", resource=self.resource, key=str(key), ttl_remaining=remaining)
                    return Ok(CachedValue(record.value, CacheSource.CACHE, remaining, record.fetched_at))
                logger.info("cache.stale", resource=self.resource, key=str(key))

        logger.info("cache.miss", resource=self.resource, key=str(key), force_refresh=force_refresh)
        fetched = await self._fetch(key)
        if not fetched.is_ok:
            return fetched

        now = self._clock()
        try:
            value = self._map(fetched.value, key, now)
        except Exception:
            logger.exception("cache.map_failed", resource=self.resource, key=str(key))
            return Err(Error.internal(f"Failed to map {self.resource} for '{key}'."))

        await self._write(key, value, now)
        return Ok(CachedValue(value, CacheSource.PROVIDER, int(self.ttl.total_seconds()), now))

    async def _read(self, key: K) -> CacheRecord[T] | None:
        try:
            return await self._load(key)
        except Exception as exc:
            logger.warning("cache.read_failed", resource=self.resource, key=str(key), error=str(exc))
            return None

    async def _write(self, key: K, value: T, fetched_at: datetime) -> None:
        try:
            await self._save(key, value, fetched_at)
            logger.info("cache.stored", resource=self.resource, key=str(key))
        except Exception as exc:
            logger.error(
                "cache.write_failed",
                resource=self.resource,
                key=str(key),
                code=ErrorCode.CACHE_WRITE_FAILED.value,
                error=str(exc),
            )
