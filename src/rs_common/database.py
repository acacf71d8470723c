"""Postgres access for the ledger, enrollments, payments and member export.

One async engine per process. Every statement is bounded by
DB_COMMAND_TIMEOUT so a stalled store surfaces as LedgerUnavailable
instead of a hung request.
"""

from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from config.settings import settings


class Base(DeclarativeBase):
    pass


def build_engine(url: str | None = None) -> AsyncEngine:
    timeout = settings.DB_COMMAND_TIMEOUT
    return create_async_engine(
        url or settings.DATABASE_URL,
        echo=settings.DEBUG,
        pool_size=10,
        max_overflow=5,
        pool_timeout=timeout,
        pool_pre_ping=True,
        connect_args={"command_timeout": timeout},
    )


engine: AsyncEngine = build_engine()

async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def check_connection(bind: AsyncEngine | None = None) -> None:
    """Round-trip one statement; raises the driver error when the store is unreachable."""
    async with (bind or engine).connect() as conn:
        await conn.execute(text("SELECT 1"))


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        yield session
