"""
Database engine and session management using SQLAlchemy 2.x (asyncio).
Provides connection pooling and the session factory used by the review store.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from ratekeeper.lib.settings import settings


# Base class for all SQLAlchemy models
class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    SQLite (used by the test suite) does not take pool sizing arguments,
    everything else gets the configured pool and acquire timeout.
    """
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=echo)

    return create_async_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout_seconds,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind,
        autoflush=False,
        expire_on_commit=False,
    )


engine = build_engine(settings.database_url, echo=settings.debug)

# Session factory
SessionLocal = build_session_factory(engine)


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession] = SessionLocal,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Transactional scope around a series of operations.

    Usage:
        async with session_scope() as session:
            result = await session.scalars(select(Review))
    """
    session = session_factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def init_db(bind: AsyncEngine = engine) -> None:
    """
    Create all tables.
    Should be called after all models are imported.
    """
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db(bind: AsyncEngine = engine) -> None:
    """
    Drop all tables. Use with caution - for testing only.
    """
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
