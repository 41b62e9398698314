"""TransactionRunner — one place that opens, commits and rolls back transactions."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TransactionRunner:
    """Frames every multi-row side effect in a single database transaction.

    ``with_tx`` hands ``fn`` a session that is already inside a transaction.
    Repositories that take a ``tx`` argument must issue their statements on
    that session so the business change and its outbox event commit together.
    The transaction commits only if ``fn`` returns; any exception, including
    task cancellation, rolls it back and propagates.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        if session_factory is None:
            raise ValueError("session factory required")
        self._session_factory = session_factory

    async def with_tx(self, fn: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async with self._session_factory() as session:
            try:
                async with session.begin():
                    return await fn(session)
            except BaseException:
                logger.debug("transaction rolled back", exc_info=True)
                raise

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Short-lived session for reads that do not need a transaction boundary."""
        async with self._session_factory() as session:
            yield session
