"""Async engine, session factory and the per-request session dependency.

PostgreSQL (asyncpg) in production, SQLite (aiosqlite) for local dev and tests.
"""

from collections.abc import AsyncGenerator
from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from zynk.config import Settings, get_settings


def build_engine(settings: Settings) -> AsyncEngine:
    url = make_url(settings.database_url)
    if url.get_backend_name() == "sqlite":
        # File databases need their directory; ":memory:" and "" have none
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        return create_async_engine(url, echo=settings.debug, connect_args={"check_same_thread": False})
    return create_async_engine(url, echo=settings.debug, pool_pre_ping=True)


engine = build_engine(get_settings())
async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One session per request. Services commit or roll back explicitly."""
    async with async_session_factory() as session:
        yield session
