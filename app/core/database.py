"""
Async database engine and session factory.
Uses SQLAlchemy async with asyncpg driver.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from app.core.config import get_settings

settings = get_settings()

engine = create_async_engine(
    settings.postgres_url,
    pool_size=settings.POSTGRES_POOL_SIZE,
    max_overflow=settings.POSTGRES_MAX_OVERFLOW,
    pool_timeout=settings.POSTGRES_POOL_TIMEOUT,
    pool_pre_ping=True,          # Verify connections before use
    pool_recycle=3600,
    echo=settings.POSTGRES_ECHO,
    echo_pool=settings.DEBUG,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@asynccontextmanager
async def isolated_session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """
    Session factory on an unpooled engine, disposed on exit.
    For code running in its own short-lived event loop (Celery tasks):
    pooled asyncpg connections cannot cross event loops.
    """
    task_engine = create_async_engine(settings.postgres_url, poolclass=NullPool, echo=settings.POSTGRES_ECHO)
    try:
        yield async_sessionmaker(task_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    finally:
        await task_engine.dispose()


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass
