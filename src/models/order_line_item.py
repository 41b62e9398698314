"""OrderLineItem model — product line items within a vendor order."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.database.types import enum_column
from src.models.enums import LineItemStatus

if TYPE_CHECKING:
    from src.models.vendor_order import VendorOrder


class OrderLineItem(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "order_line_items"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("vendor_orders.id", ondelete="CASCADE"), nullable=False
    )
    product_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    qty: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unit_price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[LineItemStatus] = mapped_column(
        enum_column(LineItemStatus, "line_item_status"),
        nullable=False,
        default=LineItemStatus.PENDING,
    )

    vendor_order: Mapped[VendorOrder] = relationship(
        "VendorOrder", back_populates="line_items", lazy="raise"
    )

    __table_args__ = (Index("ix_order_line_items_order_id", "order_id"),)
