from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from marketlens.core.config import settings


def create_session_factory(database_url: str | None = None) -> tuple[AsyncEngine, async_sessionmaker]:
    engine = create_async_engine(database_url or settings.database_url, echo=False, pool_pre_ping=True)
    return engine, async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
