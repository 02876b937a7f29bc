from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from filemount.core.config import get_settings

from .utils import normalize_database_url


def build_engine(url: str | None = None) -> AsyncEngine:
    database_url = normalize_database_url(url or get_settings().database_url)
    if database_url.startswith("sqlite+aiosqlite://") and ":memory:" in database_url:
        # One shared connection, otherwise every checkout sees an empty database.
        return create_async_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(database_url, pool_pre_ping=True)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, expire_on_commit=False)
