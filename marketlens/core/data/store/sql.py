"""PostgreSQL store backend — async SQLAlchemy with ON CONFLICT upserts."""
from dataclasses import asdict, fields
from datetime import datetime, timedelta

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import async_sessionmaker

from marketlens.core.data.models import CacheRecord, Exchange, Fundamentals, NoDataMarker, Quote, Symbol
from marketlens.core.data.store.base import ExchangeStore, KeyedStore, NoDataStore, SymbolStore
from marketlens.core.db.models import ExchangeRow, FundamentalsRow, NoDataRow, QuoteRow, SymbolRow

_FUNDAMENTAL_FIELDS = {f.name for f in fields(Fundamentals)} - {"ticker", "last_updated"}
_QUOTE_FIELDS = [f.name for f in fields(Quote) if f.name != "ticker"]


def _exchange_from_row(row: ExchangeRow) -> Exchange:
    return Exchange(
        code=row.code,
        name=row.name,
        country=row.country,
        currency=row.currency,
        operating_mic=row.operating_mic,
    )


def _symbol_from_row(row: SymbolRow) -> Symbol:
    return Symbol(
        ticker=row.ticker,
        exchange_code=row.exchange_code,
        parent_exchange=row.parent_exchange,
        name=row.name,
        type=row.type,
        isin=row.isin,
        currency=row.currency,
        is_active=row.is_active,
    )


class SqlExchangeStore(ExchangeStore):

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def get_all(self) -> CacheRecord[list[Exchange]] | None:
        async with self._session_factory() as session:
            rows = (await session.execute(select(ExchangeRow).order_by(ExchangeRow.code))).scalars().all()
        if not rows:
            return None
        return CacheRecord([_exchange_from_row(r) for r in rows], min(r.fetched_at for r in rows))

    async def get_by_code(self, code: str) -> Exchange | None:
        async with self._session_factory() as session:
            stmt = select(ExchangeRow).where(func.upper(ExchangeRow.code) == code.upper())
            row = (await session.execute(stmt)).scalars().first()
        return _exchange_from_row(row) if row else None

    async def upsert_many(self, exchanges: list[Exchange], fetched_at: datetime, ttl: timedelta) -> None:
        unique = {e.code: e for e in exchanges}
        async with self._session_factory() as session:
            # Exchanges the provider no longer lists go in the same transaction
            await session.execute(delete(ExchangeRow).where(ExchangeRow.code.not_in(list(unique))))
            if unique:
                values = [
                    {**asdict(e), "fetched_at": fetched_at, "expires_at": fetched_at + ttl}
                    for e in unique.values()
                ]
                stmt = insert(ExchangeRow).values(values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[ExchangeRow.code],
                    set_={
                        "name": stmt.excluded.name,
                        "operating_mic": stmt.excluded.operating_mic,
                        "country": stmt.excluded.country,
                        "currency": stmt.excluded.currency,
                        "fetched_at": stmt.excluded.fetched_at,
                        "expires_at": stmt.excluded.expires_at,
                    },
                )
                await session.execute(stmt)
            await session.commit()


class SqlSymbolStore(SymbolStore):

    # asyncpg caps bind parameters at 32767 per statement
    BATCH_SIZE = 2000

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def get_by_exchange(self, exchange_code: str) -> CacheRecord[list[Symbol]] | None:
        stmt = (
            select(SymbolRow)
            .where(func.upper(SymbolRow.parent_exchange) == exchange_code.upper())
            .order_by(SymbolRow.ticker)
        )
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        if not rows:
            return None
        return CacheRecord([_symbol_from_row(r) for r in rows], min(r.fetched_at for r in rows))

    async def get_by_ticker(self, ticker: str) -> Symbol | None:
        stmt = (
            select(SymbolRow)
            .where(func.upper(SymbolRow.ticker) == ticker.upper())
            .order_by(SymbolRow.exchange_code)
            .limit(1)
        )
        async with self._session_factory() as session:
            row = (await session.execute(stmt)).scalars().first()
        return _symbol_from_row(row) if row else None

    async def upsert_many(
        self, exchange_code: str, symbols: list[Symbol], fetched_at: datetime, ttl: timedelta
    ) -> None:
        # Providers occasionally list the same (ticker, exchange) twice; last one wins
        unique = {(s.ticker, s.exchange_code): s for s in symbols}
        values = [
            {**asdict(s), "fetched_at": fetched_at, "expires_at": fetched_at + ttl}
            for s in unique.values()
        ]
        async with self._session_factory() as session:
            for i in range(0, len(values), self.BATCH_SIZE):
                stmt = insert(SymbolRow).values(values[i:i + self.BATCH_SIZE])
                stmt = stmt.on_conflict_do_update(
                    index_elements=[SymbolRow.ticker, SymbolRow.exchange_code],
                    set_={
                        "parent_exchange": stmt.excluded.parent_exchange,
                        "name": stmt.excluded.name,
                        "type": stmt.excluded.type,
                        "isin": stmt.excluded.isin,
                        "currency": stmt.excluded.currency,
                        "is_active": stmt.excluded.is_active,
                        "fetched_at": stmt.excluded.fetched_at,
                        "expires_at": stmt.excluded.expires_at,
                    },
                )
                await session.execute(stmt)
            await session.commit()

    async def delete_by_exchange(self, exchange_code: str) -> None:
        stmt = delete(SymbolRow).where(func.upper(SymbolRow.parent_exchange) == exchange_code.upper())
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()


class SqlQuoteStore(KeyedStore[Quote]):

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def get(self, ticker: str) -> CacheRecord[Quote] | None:
        async with self._session_factory() as session:
            row = await session.get(QuoteRow, ticker.upper())
        if row is None:
            return None
        quote = Quote(ticker=row.ticker, **{name: getattr(row, name) for name in _QUOTE_FIELDS})
        return CacheRecord(quote, row.fetched_at)

    async def upsert(self, value: Quote, fetched_at: datetime) -> None:
        row = {**asdict(value), "ticker": value.ticker.upper(), "fetched_at": fetched_at}
        stmt = insert(QuoteRow).values(**row)
        stmt = stmt.on_conflict_do_update(
            index_elements=[QuoteRow.ticker],
            set_={k: v for k, v in row.items() if k != "ticker"},
        )
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()


class SqlFundamentalsStore(KeyedStore[Fundamentals]):

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def get(self, ticker: str) -> CacheRecord[Fundamentals] | None:
        async with self._session_factory() as session:
            row = await session.get(FundamentalsRow, ticker.upper())
        if row is None:
            return None
        payload = {k: v for k, v in (row.payload or {}).items() if k in _FUNDAMENTAL_FIELDS}
        fundamentals = Fundamentals(ticker=row.ticker, last_updated=row.last_updated, **payload)
        return CacheRecord(fundamentals, row.fetched_at)

    async def upsert(self, value: Fundamentals, fetched_at: datetime) -> None:
        payload = {k: v for k, v in asdict(value).items() if k in _FUNDAMENTAL_FIELDS}
        stmt = insert(FundamentalsRow).values(
            ticker=value.ticker.upper(),
            payload=payload,
            last_updated=value.last_updated,
            fetched_at=fetched_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[FundamentalsRow.ticker],
            set_={
                "payload": stmt.excluded.payload,
                "last_updated": stmt.excluded.last_updated,
                "fetched_at": stmt.excluded.fetched_at,
            },
        )
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()


class SqlNoDataStore(NoDataStore):

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def get(self, ticker: str, exchange_code: str) -> NoDataMarker | None:
        async with self._session_factory() as session:
            row = await session.get(NoDataRow, (ticker.upper(), exchange_code.upper()))
        if row is None:
            return None
        return NoDataMarker(
            ticker=row.ticker,
            exchange_code=row.exchange_code,
            failure_count=row.failure_count,
            first_failed_at=row.first_failed_at,
            last_attempted_at=row.last_attempted_at,
            expires_at=row.expires_at,
            last_error=row.last_error,
        )

    async def mark(
        self, ticker: str, exchange_code: str, reason: str | None, now: datetime, ttl: timedelta
    ) -> None:
        stmt = insert(NoDataRow).values(
            ticker=ticker.upper(),
            exchange_code=exchange_code.upper(),
            failure_count=1,
            first_failed_at=now,
            last_attempted_at=now,
            expires_at=now + ttl,
            last_error=reason,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[NoDataRow.ticker, NoDataRow.exchange_code],
            set_={
                "failure_count": NoDataRow.failure_count + 1,
                "last_attempted_at": stmt.excluded.last_attempted_at,
                "expires_at": stmt.excluded.expires_at,
                "last_error": stmt.excluded.last_error,
            },
        )
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()

    async def clear(self, ticker: str, exchange_code: str) -> None:
        stmt = delete(NoDataRow).where(
            NoDataRow.ticker == ticker.upper(),
            NoDataRow.exchange_code == exchange_code.upper(),
        )
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()
