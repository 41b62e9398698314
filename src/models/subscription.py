"""Subscription model — local mirror of a billing-provider subscription."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Index, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.database.types import JSONType, UTCDateTime, enum_column
from src.models.enums import SubscriptionStatus


class Subscription(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "subscriptions"

    store_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    external_subscription_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    status: Mapped[SubscriptionStatus] = mapped_column(
        enum_column(SubscriptionStatus, "subscription_status"),
        nullable=False,
        default=SubscriptionStatus.ACTIVE,
    )
    price_id: Mapped[str | None] = mapped_column(String(255))
    current_period_start: Mapped[datetime | None] = mapped_column(UTCDateTime)
    current_period_end: Mapped[datetime | None] = mapped_column(UTCDateTime)
    cancel_at_period_end: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    canceled_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    paused_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    pause_effective_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    metadata_extra: Mapped[dict] = mapped_column("metadata", JSONType, nullable=False, default=dict)

    __table_args__ = (
        Index("ix_subscriptions_store_id", "store_id"),
        # One non-canceled subscription per store.
        Index(
            "uq_subscriptions_store_id_live",
            "store_id",
            unique=True,
            postgresql_where=text("status <> 'canceled'"),
            sqlite_where=text("status <> 'canceled'"),
        ),
        Index("ix_subscriptions_updated_at", "updated_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Subscription id={self.id} store={self.store_id} "
            f"external={self.external_subscription_id} status={self.status}>"
        )
