"""VendorOrderRepository — pending-order reads and expiry writes."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from src.exceptions import NotFoundException
from src.models.enums import LineItemStatus, VendorOrderStatus
from src.models.order_line_item import OrderLineItem
from src.models.vendor_order import VendorOrder


class VendorOrderRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find_pending_orders_before(self, cutoff: datetime) -> list[VendorOrder]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(VendorOrder)
                .where(
                    VendorOrder.status == VendorOrderStatus.CREATED_PENDING,
                    VendorOrder.created_at < cutoff,
                )
                .order_by(VendorOrder.created_at.asc(), VendorOrder.id.asc())
            )
            return list(result.scalars().all())

    async def find_for_update(self, tx: AsyncSession, order_id: uuid.UUID) -> VendorOrder:
        """Re-read an order and its line items under a row lock."""
        result = await tx.execute(
            select(VendorOrder)
            .where(VendorOrder.id == order_id)
            .options(selectinload(VendorOrder.line_items))
            .with_for_update(of=VendorOrder)
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundException(f"vendor order {order_id} not found")
        return order

    async def update_line_item_status(
        self, tx: AsyncSession, line_item_id: uuid.UUID, status: LineItemStatus
    ) -> None:
        await tx.execute(
            update(OrderLineItem).where(OrderLineItem.id == line_item_id).values(status=status)
        )

    async def mark_expired(self, tx: AsyncSession, order_id: uuid.UUID, expired_at: datetime) -> None:
        await tx.execute(
            update(VendorOrder)
            .where(VendorOrder.id == order_id)
            .values(
                status=VendorOrderStatus.EXPIRED,
                balance_due_cents=0,
                expired_at=expired_at,
            )
        )
