"""OutboxDLQRepository — sink for events the publisher will not retry."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.models.outbox_dlq import OutboxDLQ
from src.models.outbox_event import OutboxEvent
from src.models.enums import OutboxDLQErrorReason
from src.modules.events.outbox_repository import truncate_error

DEFAULT_LIST_LIMIT = 50


class OutboxDLQRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def insert(self, tx: AsyncSession, entry: OutboxDLQ) -> OutboxDLQ:
        if tx is None:
            raise ValueError("transaction required")
        entry.error_message = truncate_error(entry.error_message)
        tx.add(entry)
        await tx.flush()
        return entry

    async def move_event(
        self,
        tx: AsyncSession,
        event: OutboxEvent,
        reason: OutboxDLQErrorReason,
        error: str | None,
    ) -> OutboxDLQ:
        """Copy ``event`` into the DLQ, keeping its id as ``event_id``."""
        entry = OutboxDLQ(
            event_id=event.id,
            event_type=event.event_type,
            aggregate_type=event.aggregate_type,
            aggregate_id=event.aggregate_id,
            payload=event.payload,
            error_reason=reason,
            error_message=error,
            attempt_count=event.attempt_count,
        )
        return await self.insert(tx, entry)

    async def find_by_event_id(self, event_id: uuid.UUID) -> OutboxDLQ | None:
        async with self._session_factory() as session:
            result = await session.execute(select(OutboxDLQ).where(OutboxDLQ.event_id == event_id))
            return result.scalar_one_or_none()

    async def list(self, limit: int = DEFAULT_LIST_LIMIT) -> list[OutboxDLQ]:
        if limit <= 0:
            limit = DEFAULT_LIST_LIMIT
        async with self._session_factory() as session:
            result = await session.execute(
                select(OutboxDLQ).order_by(OutboxDLQ.failed_at.desc()).limit(limit)
            )
            return list(result.scalars().all())
