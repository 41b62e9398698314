"""OutboxService — queue domain events inside the caller's transaction."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.enums import OutboxAggregateType, OutboxEventType
from src.models.outbox_event import OutboxEvent
from src.modules.events.outbox_repository import OutboxRepository
from src.modules.events.payloads import ActorRef, PayloadEnvelope

logger = logging.getLogger(__name__)


@dataclass
class DomainEvent:
    event_type: OutboxEventType
    aggregate_type: OutboxAggregateType
    aggregate_id: uuid.UUID
    data: BaseModel | dict[str, Any]
    version: int = 1
    occurred_at: datetime | None = None
    actor: ActorRef | None = None


class OutboxService:
    """Appends events to the outbox.

    ``emit`` only ever inserts; publishing, retries and dead-lettering belong
    to the external publisher. The row id doubles as the envelope ``eventId``
    so consumers and the DLQ refer to one identifier.
    """

    def __init__(self, repository: OutboxRepository) -> None:
        self.repository = repository

    async def emit(self, tx: AsyncSession, event: DomainEvent) -> OutboxEvent:
        if tx is None:
            raise ValueError("transaction required")

        if isinstance(event.data, BaseModel):
            data = event.data.model_dump(mode="json", by_alias=True, exclude_none=True)
        else:
            data = dict(event.data)

        event_id = uuid.uuid4()
        envelope = PayloadEnvelope(
            version=event.version if event.version > 0 else 1,
            event_id=event_id,
            occurred_at=event.occurred_at or datetime.now(UTC),
            actor=event.actor,
            data=data,
        )
        row = OutboxEvent(
            id=event_id,
            event_type=event.event_type,
            aggregate_type=event.aggregate_type,
            aggregate_id=event.aggregate_id,
            payload=envelope.to_payload(),
            attempt_count=0,
        )
        await self.repository.insert(tx, row)

        logger.info(
            "outbox event queued event_id=%s event_type=%s aggregate_type=%s aggregate_id=%s",
            event_id,
            event.event_type.value,
            event.aggregate_type.value,
            event.aggregate_id,
        )
        return row
