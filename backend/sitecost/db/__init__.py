"""
Database Layer - Async SQLAlchemy engine + session factory.

The engine and session factory are built from ``Settings`` at startup and
kept on ``app.state``; request handlers reach them through ``get_db``.
"""
import logging
from typing import AsyncGenerator
from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger("sitecost-db")


class Base(DeclarativeBase):
    pass


def build_engine(settings) -> AsyncEngine:
    return create_async_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        echo=False,
        pool_timeout=5,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine, settings) -> None:
    """Create missing tables. Skips gracefully in dev mode when no DB is configured."""
    if not settings.database_configured:
        logger.warning("DATABASE_URL not set — skipping init_db() (dev mode)")
        return
    if not settings.create_tables_on_startup:
        logger.info("DB_CREATE_ALL disabled — leaving schema untouched")
        return
    from sitecost.models import orm_models  # noqa: F401
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables initialized.")
    except Exception as e:
        logger.warning(f"init_db skipped (DB not available): {e}")


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
