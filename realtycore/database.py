"""
Database plumbing for RealtyCore: the declarative Base shared by the models,
a lazily built async engine (asyncpg in production), and the sessions handed
to services.

Services do not commit on their own. Every check-then-act sequence goes
through utils.transactions.run_in_transaction, which commits or rolls back
each attempt. The request session only commits what a handler left pending
and rolls back on any error.

expire_on_commit=False: rows and reservation results are read after
run_in_transaction has committed, and async sessions cannot lazy-load.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator, Optional

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from realtycore.config import Settings, get_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for every RealtyCore table."""


_engine: Optional[AsyncEngine] = None
_sessionmaker: Optional[async_sessionmaker] = None


def engine_options(settings: Settings) -> dict:
    """
    Keyword arguments for create_async_engine. Pool sizing applies to server
    databases only; SQLite URLs (local scripts) keep the dialect's own pool.
    """
    options = {"echo": settings.app_env == "development"}
    if make_url(settings.database_url).get_backend_name() != "sqlite":
        options.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,
        )
    return options


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(settings.database_url, **engine_options(settings))
        logger.info(
            "Database engine created for %s",
            make_url(settings.database_url).render_as_string(hide_password=True),
        )
    return _engine


def get_sessionmaker() -> async_sessionmaker:
    global _sessionmaker
    if _sessionmaker is None:
        _sessionmaker = async_sessionmaker(
            get_engine(), class_=AsyncSession, expire_on_commit=False
        )
    return _sessionmaker


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Session for work outside a request (seed and maintenance scripts)."""
    async with get_sessionmaker()() as session:
        yield session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request."""
    async with get_sessionmaker()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def dispose_engine() -> None:
    """Close pooled connections and drop the engine. No-op if none was built."""
    global _engine, _sessionmaker
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _sessionmaker = None
    logger.info("Database engine disposed")
