"""Bulk fundamentals fetch for every symbol of an exchange.

Symbols that already have fresh fundamentals, or that the provider recently
had nothing for, are skipped. The rest are fetched in batches through the
regular fundamentals read-through, a few at a time. A daily-quota answer
stops the run; per-minute rate limits pause it before the next batch.
"""
import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Awaitable, Callable

import structlog

from marketlens.core.cache.read_through import Clock, utc_now
from marketlens.core.config import settings
from marketlens.core.data.models import Symbol
from marketlens.core.data.store.base import NoDataStore
from marketlens.core.result import Err, Error, ErrorCode, Ok, Result
from marketlens.core.services.stocks import StockService
from marketlens.core.services.symbols import SymbolService

logger = structlog.get_logger()

MAX_BATCH_SIZE = 10_000
# Pause after a rate-limited batch: one minute per hit, capped
RATE_LIMIT_PAUSE_SECONDS = 60.0
MAX_RATE_LIMIT_PAUSE_SECONDS = 300.0

Sleep = Callable[[float], Awaitable[None]]


class FetchOutcome(str, Enum):
    SUCCESS = "success"
    NO_DATA = "no_data"
    RATE_LIMITED = "rate_limited"
    DAILY_LIMIT = "daily_limit"
    FAILED = "failed"


@dataclass(frozen=True)
class BulkFetchReport:
    exchange_code: str
    total_symbols: int
    symbols_without_data: int
    skipped_no_data: int
    processed: int
    successful: int
    failed: int
    marked_no_data: int
    rate_limit_hits: int
    daily_limit_hit: bool
    total_wait_seconds: float
    batches_processed: int
    started_at: datetime
    completed_at: datetime


class BulkFetchService:

    def __init__(
        self,
        symbols: SymbolService,
        stocks: StockService,
        no_data: NoDataStore,
        batch_size: int | None = None,
        concurrency: int | None = None,
        batch_pause_seconds: float | None = None,
        no_data_ttl: timedelta | None = None,
        clock: Clock = utc_now,
        sleep: Sleep = asyncio.sleep,
    ):
        self.symbols = symbols
        self.stocks = stocks
        self.no_data = no_data
        self.batch_size = batch_size or settings.bulk_fetch_batch_size
        self.concurrency = concurrency or settings.bulk_fetch_concurrency
        self.batch_pause_seconds = (
            settings.bulk_fetch_batch_pause_seconds if batch_pause_seconds is None else batch_pause_seconds
        )
        self.no_data_ttl = no_data_ttl or settings.no_data_ttl
        self._clock = clock
        self._sleep = sleep

    async def bulk_fetch_fundamentals(
        self, exchange_code: str, batch_size: int | None = None
    ) -> Result[BulkFetchReport]:
        batch_size = self.batch_size if batch_size is None else batch_size
        if not 1 <= batch_size <= MAX_BATCH_SIZE:
            return Err(Error.validation(f"batch_size must be between 1 and {MAX_BATCH_SIZE}."))

        validated = await self.symbols.validate_exchange(exchange_code)
        if not validated.is_ok:
            return validated
        code = validated.value.code

        listed = await self.symbols.read_symbols(code)
        if not listed.is_ok:
            return listed
        all_symbols = listed.value.value

        started_at = self._clock()
        pending, skipped_no_data = await self._pending(all_symbols, started_at)
        logger.info(
            "bulk_fetch.started",
            exchange=code,
            total=len(all_symbols),
            pending=len(pending),
            skipped_no_data=skipped_no_data,
        )

        batches = [pending[i:i + batch_size] for i in range(0, len(pending), batch_size)]
        semaphore = asyncio.Semaphore(self.concurrency)
        processed = successful = marked = rate_limit_hits = 0
        total_wait = 0.0
        daily_limit_hit = False
        batches_processed = 0

        for number, batch in enumerate(batches, start=1):
            outcomes = await asyncio.gather(*(self._fetch_one(s, semaphore) for s in batch))
            batches_processed = number
            processed += len(batch)
            successful += outcomes.count(FetchOutcome.SUCCESS)
            marked += outcomes.count(FetchOutcome.NO_DATA)
            batch_rate_limits = outcomes.count(FetchOutcome.RATE_LIMITED)
            rate_limit_hits += batch_rate_limits
            logger.info(
                "bulk_fetch.batch_done",
                exchange=code,
                batch=number,
                batches=len(batches),
                successful=outcomes.count(FetchOutcome.SUCCESS),
                rate_limited=batch_rate_limits,
            )

            if FetchOutcome.DAILY_LIMIT in outcomes:
                daily_limit_hit = True
                logger.error("bulk_fetch.daily_limit", exchange=code, batch=number, processed=processed)
                break
            if number == len(batches):
                break
            if batch_rate_limits:
                wait = min(MAX_RATE_LIMIT_PAUSE_SECONDS, RATE_LIMIT_PAUSE_SECONDS * batch_rate_limits)
                logger.warning("bulk_fetch.rate_limited", exchange=code, batch=number, wait_seconds=wait)
            else:
                wait = self.batch_pause_seconds
            total_wait += wait
            await self._sleep(wait)

        report = BulkFetchReport(
            exchange_code=code,
            total_symbols=len(all_symbols),
            symbols_without_data=len(pending),
            skipped_no_data=skipped_no_data,
            processed=processed,
            successful=successful,
            failed=processed - successful,
            marked_no_data=marked,
            rate_limit_hits=rate_limit_hits,
            daily_limit_hit=daily_limit_hit,
            total_wait_seconds=total_wait,
            batches_processed=batches_processed,
            started_at=started_at,
            completed_at=self._clock(),
        )
        logger.info(
            "bulk_fetch.completed",
            exchange=code,
            processed=report.processed,
            successful=report.successful,
            failed=report.failed,
            daily_limit_hit=report.daily_limit_hit,
        )
        return Ok(report)

    async def _pending(self, symbols: list[Symbol], now: datetime) -> tuple[list[Symbol], int]:
        """Symbols still lacking fresh fundamentals, and how many were skipped as no-data."""
        pending: list[Symbol] = []
        seen: set[str] = set()
        skipped = 0
        for symbol in sorted(symbols, key=lambda s: s.ticker):
            ticker = symbol.ticker.upper()
            if ticker in seen:
                continue
            seen.add(ticker)
            if await self._has_fresh_fundamentals(symbol, now):
                continue
            if await self._is_marked(symbol, now):
                skipped += 1
                continue
            pending.append(symbol)
        return pending, skipped

    async def _has_fresh_fundamentals(self, symbol: Symbol, now: datetime) -> bool:
        try:
            record = await self.stocks.fundamentals.get(symbol.ticker)
        except Exception as exc:
            logger.warning("bulk_fetch.store_read_failed", ticker=symbol.ticker, error=str(exc))
            return False
        return record is not None and record.is_fresh(now, self.stocks.fundamentals_ttl)

    async def _is_marked(self, symbol: Symbol, now: datetime) -> bool:
        try:
            marker = await self.no_data.get(symbol.ticker, symbol.exchange_code)
        except Exception as exc:
            logger.warning("bulk_fetch.marker_read_failed", ticker=symbol.ticker, error=str(exc))
            return False
        return marker is not None and marker.is_active(now)

    async def _fetch_one(self, symbol: Symbol, semaphore: asyncio.Semaphore) -> FetchOutcome:
        async with semaphore:
            result = await self.stocks.get_symbol_fundamentals(symbol)

        if result.is_ok:
            await self._clear_marker(symbol)
            return FetchOutcome.SUCCESS

        error = result.error
        if error.is_daily_limit:
            return FetchOutcome.DAILY_LIMIT
        if error.code == ErrorCode.PROVIDER_RATE_LIMIT:
            return FetchOutcome.RATE_LIMITED
        if error.code == ErrorCode.NOT_FOUND:
            await self._mark(symbol, error.message)
            return FetchOutcome.NO_DATA
        logger.warning(
            "bulk_fetch.fetch_failed",
            ticker=symbol.ticker,
            exchange=symbol.exchange_code,
            code=error.code.value,
            error=error.message,
        )
        return FetchOutcome.FAILED

    async def _mark(self, symbol: Symbol, reason: str) -> None:
        try:
            await self.no_data.mark(symbol.ticker, symbol.exchange_code, reason, self._clock(), self.no_data_ttl)
        except Exception as exc:
            logger.warning("bulk_fetch.mark_failed", ticker=symbol.ticker, error=str(exc))
        else:
            logger.info("bulk_fetch.marked_no_data", ticker=symbol.ticker, exchange=symbol.exchange_code)

    async def _clear_marker(self, symbol: Symbol) -> None:
        try:
            await self.no_data.clear(symbol.ticker, symbol.exchange_code)
        except Exception as exc:
            logger.warning("bulk_fetch.clear_failed", ticker=symbol.ticker, error=str(exc))
