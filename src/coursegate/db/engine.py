"""Async SQLAlchemy engine and session factory.

Learn: One engine (connection pool) per process, created explicitly by
init_engine() in the app lifespan and disposed on shutdown. Each request
borrows an AsyncSession through the get_db dependency and hands it back
when the response is sent. init_engine() is idempotent: calling it while
an engine is open returns the existing one instead of opening a second
pool.
"""

from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from coursegate.config import settings
from coursegate.db.models import MODEL_REGISTRY, Base

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def init_engine(url: Optional[str] = None, **engine_kwargs) -> AsyncEngine:
    """Create the process-wide engine once."""
    global _engine, _session_factory
    if _engine is not None:
        return _engine

    url = url or settings.database_url
    if url.startswith("postgresql"):
        # Connection pool: min 5, max 20 connections.
        engine_kwargs.setdefault("pool_size", 5)
        engine_kwargs.setdefault("max_overflow", 15)
    _engine = create_async_engine(url, echo=settings.debug, **engine_kwargs)
    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    return _engine


def get_engine() -> AsyncEngine:
    """Get the engine (must be initialized first)."""
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_engine() first.")
    return _engine


async def dispose_engine() -> None:
    """Close every pooled connection and forget the engine."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None


async def create_tables(engine: Optional[AsyncEngine] = None) -> None:
    """Create every registered collection's table (dev bootstrap and tests).

    Production schemas are managed by Alembic; this only covers the
    tables listed in MODEL_REGISTRY.
    """
    engine = engine or get_engine()
    tables = [model.__table__ for model in MODEL_REGISTRY.values()]
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, tables=tables)


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency — yields a session per request, auto-closes."""
    if _session_factory is None:
        init_engine()
    async with _session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
