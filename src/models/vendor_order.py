"""VendorOrder model — per-vendor sub-order within a checkout group."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Index, Integer, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.database.types import UTCDateTime, enum_column
from src.models.enums import VendorOrderStatus

if TYPE_CHECKING:
    from src.models.order_line_item import OrderLineItem


class VendorOrder(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "vendor_orders"

    checkout_group_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    buyer_store_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    vendor_store_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    status: Mapped[VendorOrderStatus] = mapped_column(
        enum_column(VendorOrderStatus, "vendor_order_status"),
        nullable=False,
        default=VendorOrderStatus.CREATED_PENDING,
    )
    subtotal_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    balance_due_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    order_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expired_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    canceled_at: Mapped[datetime | None] = mapped_column(UTCDateTime)

    line_items: Mapped[list[OrderLineItem]] = relationship(
        "OrderLineItem", back_populates="vendor_order", lazy="raise", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_vendor_orders_status_created_at", "status", "created_at"),
        Index("ix_vendor_orders_checkout_group_id", "checkout_group_id"),
    )
