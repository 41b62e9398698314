"""Pytest fixtures shared by the tests under tests/ and src/modules/*/tests.

Tests run against a file-backed SQLite database so that the separate sessions
opened by repositories and by ``TransactionRunner`` see each other's commits.
"""

from collections.abc import AsyncGenerator

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

import src.models  # noqa: F401  (populates Base.metadata)
from src.database.base import Base
from src.database.transaction import TransactionRunner


@pytest_asyncio.fixture
async def async_test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(async_test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def async_test_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def tx_runner(session_factory) -> TransactionRunner:
    return TransactionRunner(session_factory)
