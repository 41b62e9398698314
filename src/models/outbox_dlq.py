"""OutboxDLQ model — terminal storage for events the publisher gave up on."""

import uuid
from datetime import datetime

from sqlalchemy import Index, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base, UUIDPrimaryKeyMixin, utcnow
from src.database.types import JSONType, UTCDateTime, enum_column
from src.models.enums import OutboxAggregateType, OutboxDLQErrorReason, OutboxEventType


class OutboxDLQ(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "outbox_dlq"

    event_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, unique=True)
    event_type: Mapped[OutboxEventType] = mapped_column(
        enum_column(OutboxEventType, "event_type_enum"), nullable=False
    )
    aggregate_type: Mapped[OutboxAggregateType] = mapped_column(
        enum_column(OutboxAggregateType, "aggregate_type_enum"), nullable=False
    )
    aggregate_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    payload: Mapped[dict] = mapped_column("payload_json", JSONType, nullable=False)
    error_reason: Mapped[OutboxDLQErrorReason] = mapped_column(
        enum_column(OutboxDLQErrorReason, "outbox_dlq_error_reason_enum"), nullable=False
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    attempt_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_outbox_dlq_failed_at", "failed_at"),
        Index("ix_outbox_dlq_event_type", "event_type"),
    )
