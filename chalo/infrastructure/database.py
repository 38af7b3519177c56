"""
Async SQLAlchemy engine, session factory and unit of work.

Uses ``asyncpg`` as the PostgreSQL driver.  One session is one unit of
work: a request's booking and vehicle writes commit or roll back together,
and the status-change events they produced are released only after the
commit succeeds.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from chalo.config import settings
from chalo.infrastructure.events import BufferedEventPublisher

engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


@asynccontextmanager
async def unit_of_work(
    events: BufferedEventPublisher,
    factory: async_sessionmaker[AsyncSession] = async_session_factory,
) -> AsyncIterator[AsyncSession]:
    """Commit on success and flush ``events``; roll back and drop them on error."""
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            events.discard()
            raise
    await events.flush()
