"""
Async SQLAlchemy engine and session factory.

PostgreSQL via ``asyncpg`` in production.  A ``sqlite+aiosqlite`` URL is
accepted for local development; it gets SQLite's default pool instead of
the sized PostgreSQL one.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from rideshare.config import settings


def build_engine(url: str) -> AsyncEngine:
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=settings.database_echo)
    return create_async_engine(
        url,
        echo=settings.database_echo,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_pre_ping=True,
    )


engine = build_engine(settings.database_url)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base for users, rides, bookings, messages and ratings."""


@asynccontextmanager
async def session_scope(factory=None) -> AsyncIterator[AsyncSession]:
    """One unit of work outside a request: commit on success, roll back on error."""
    async with (factory or async_session_factory)() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def ping(session: AsyncSession) -> None:
    """Round-trip to the database; raises ``SQLAlchemyError`` when unreachable."""
    await session.execute(text("SELECT 1"))
