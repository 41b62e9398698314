"""OutboxEvent model — transactional outbox for reliable event delivery."""

import uuid
from datetime import datetime

from sqlalchemy import Index, Integer, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base, UUIDPrimaryKeyMixin, utcnow
from src.database.types import JSONType, UTCDateTime, enum_column
from src.models.enums import OutboxAggregateType, OutboxEventType


class OutboxEvent(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "outbox_events"

    event_type: Mapped[OutboxEventType] = mapped_column(
        enum_column(OutboxEventType, "event_type_enum"), nullable=False
    )
    aggregate_type: Mapped[OutboxAggregateType] = mapped_column(
        enum_column(OutboxAggregateType, "aggregate_type_enum"), nullable=False
    )
    aggregate_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    payload: Mapped[dict] = mapped_column(JSONType, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    published_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    attempt_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_outbox_events_aggregate", "event_type", "aggregate_type", "aggregate_id"),
        Index(
            "ix_outbox_events_unpublished",
            "created_at",
            postgresql_where=text("published_at IS NULL"),
        ),
        Index("ix_outbox_events_published_at", "published_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<OutboxEvent id={self.id} type={self.event_type} "
            f"aggregate={self.aggregate_type}/{self.aggregate_id} attempts={self.attempt_count}>"
        )
