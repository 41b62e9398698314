"""OutboxRepository — persistence for outbox rows."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.models.enums import OutboxAggregateType, OutboxEventType
from src.models.outbox_event import OutboxEvent

logger = logging.getLogger(__name__)

MAX_LAST_ERROR_LENGTH = 1024


def truncate_error(message: str | None) -> str | None:
    if not message:
        return None
    return message[:MAX_LAST_ERROR_LENGTH]


class OutboxRepository:
    """Reads and writes ``outbox_events``.

    Methods taking ``tx`` run on the caller's transaction; the others open a
    short-lived session of their own.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def insert(self, tx: AsyncSession, event: OutboxEvent) -> OutboxEvent:
        if tx is None:
            raise ValueError("transaction required")
        tx.add(event)
        await tx.flush()
        return event

    async def exists(
        self,
        event_type: OutboxEventType,
        aggregate_type: OutboxAggregateType,
        aggregate_id: uuid.UUID,
    ) -> bool:
        async with self._session_factory() as session:
            return await self.exists_tx(session, event_type, aggregate_type, aggregate_id)

    async def exists_tx(
        self,
        tx: AsyncSession,
        event_type: OutboxEventType,
        aggregate_type: OutboxAggregateType,
        aggregate_id: uuid.UUID,
    ) -> bool:
        count = await tx.scalar(
            select(func.count())
            .select_from(OutboxEvent)
            .where(
                OutboxEvent.event_type == event_type,
                OutboxEvent.aggregate_type == aggregate_type,
                OutboxEvent.aggregate_id == aggregate_id,
            )
        )
        return bool(count)

    async def list_for_aggregate(
        self,
        aggregate_type: OutboxAggregateType,
        aggregate_id: uuid.UUID,
    ) -> list[OutboxEvent]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(OutboxEvent)
                .where(
                    OutboxEvent.aggregate_type == aggregate_type,
                    OutboxEvent.aggregate_id == aggregate_id,
                )
                .order_by(OutboxEvent.created_at.asc(), OutboxEvent.id.asc())
            )
            return list(result.scalars().all())

    async def fetch_unpublished(self, limit: int = 50) -> list[OutboxEvent]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(OutboxEvent)
                .where(OutboxEvent.published_at.is_(None))
                .order_by(OutboxEvent.created_at.asc(), OutboxEvent.id.asc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def fetch_unpublished_for_publish(
        self, tx: AsyncSession, limit: int = 50, max_attempts: int = 0
    ) -> list[OutboxEvent]:
        """Lock a batch of unpublished rows, skipping rows other publishers hold."""
        statement = select(OutboxEvent).where(OutboxEvent.published_at.is_(None))
        if max_attempts > 0:
            statement = statement.where(OutboxEvent.attempt_count < max_attempts)
        statement = (
            statement.order_by(OutboxEvent.created_at.asc(), OutboxEvent.id.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        result = await tx.execute(statement)
        return list(result.scalars().all())

    async def mark_published(self, tx: AsyncSession, event_id: uuid.UUID) -> None:
        await tx.execute(
            update(OutboxEvent)
            .where(OutboxEvent.id == event_id)
            .values(published_at=datetime.now(UTC))
        )

    async def mark_failed(self, tx: AsyncSession, event_id: uuid.UUID, error: str | None) -> None:
        await tx.execute(
            update(OutboxEvent)
            .where(OutboxEvent.id == event_id)
            .values(
                last_error=truncate_error(error),
                attempt_count=OutboxEvent.attempt_count + 1,
            )
        )

    async def mark_terminal(
        self,
        tx: AsyncSession,
        event_id: uuid.UUID,
        error: str | None,
        terminal_attempts: int,
    ) -> None:
        """Record a final failure; ``attempt_count`` never decreases."""
        terminal_attempts = max(terminal_attempts, 1)
        current = await tx.scalar(
            select(OutboxEvent.attempt_count).where(OutboxEvent.id == event_id)
        )
        if current is None:
            return
        await tx.execute(
            update(OutboxEvent)
            .where(OutboxEvent.id == event_id)
            .values(
                last_error=truncate_error(error),
                attempt_count=max(current, terminal_attempts),
            )
        )

    async def delete_published_before(
        self, tx: AsyncSession, cutoff: datetime, min_attempt_count: int
    ) -> int:
        statement = delete(OutboxEvent).where(
            OutboxEvent.published_at.is_not(None),
            OutboxEvent.published_at < cutoff,
        )
        if min_attempt_count > 0:
            statement = statement.where(OutboxEvent.attempt_count >= min_attempt_count)
        result = await tx.execute(statement)
        return result.rowcount or 0
