"""Integration-test fixtures.

Needs a disposable PostgreSQL database in TEST_DATABASE_URL
(postgresql+asyncpg://...). The schema is migrated once per session with
alembic; every test starts from empty tables. Without the variable, or when
the server is unreachable, the whole directory is skipped.
"""

import argparse
import asyncio
import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from alembic import command
from alembic.config import Config
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.rs_common.database import build_engine, check_connection

_ROOT = Path(__file__).resolve().parents[2]

_TABLES = (
    "payment_transactions, payment_flows, credits_ledger, enrollments, "
    "credit_products, courses, members"
)


async def _ping(url: str) -> None:
    engine = build_engine(url)
    try:
        await check_connection(engine)
    finally:
        await engine.dispose()


@pytest.fixture(scope="session")
def database_url() -> str:
    url = os.environ.get("TEST_DATABASE_URL")
    if not url:
        pytest.skip("TEST_DATABASE_URL not set")
    try:
        asyncio.run(_ping(url))
    except (OSError, DBAPIError) as e:
        pytest.skip(f"PostgreSQL unreachable: {e}")

    cfg = Config(str(_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(_ROOT / "alembic"))
    cfg.cmd_opts = argparse.Namespace(x=[f"db_url={url}"])
    command.upgrade(cfg, "head")
    return url


@pytest_asyncio.fixture
async def sessions(database_url: str) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory on a clean schema; one session per simulated request."""
    engine = create_async_engine(database_url, pool_size=20, max_overflow=0)
    async with engine.begin() as conn:
        # TRUNCATE does not fire the row-level append-only trigger
        await conn.execute(text(f"TRUNCATE {_TABLES} RESTART IDENTITY CASCADE"))
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()
