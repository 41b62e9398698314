"""Inventory reservation release for rejected or expired line items."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.base import utcnow
from src.exceptions import DependencyException
from src.models.inventory_item import InventoryItem
from src.models.order_line_item import OrderLineItem

logger = logging.getLogger(__name__)


class InventoryReleaser:
    async def release(self, tx: AsyncSession, product_id: uuid.UUID, qty: int) -> int:
        """Move ``qty`` from reserved back to available; no-op when not enough is reserved."""
        if qty <= 0:
            return 0
        if tx is None:
            raise DependencyException("transaction required for inventory release")
        result = await tx.execute(
            update(InventoryItem)
            .where(InventoryItem.product_id == product_id, InventoryItem.reserved_qty >= qty)
            .values(
                available_qty=InventoryItem.available_qty + qty,
                reserved_qty=InventoryItem.reserved_qty - qty,
                updated_at=utcnow(),
            )
        )
        released = result.rowcount or 0
        if not released:
            logger.warning("inventory release skipped product_id=%s qty=%d", product_id, qty)
        return released


async def release_line_item_inventory(
    tx: AsyncSession, item: OrderLineItem, releaser: InventoryReleaser
) -> None:
    if item.product_id is None or item.qty <= 0:
        return
    try:
        await releaser.release(tx, item.product_id, item.qty)
    except DependencyException:
        raise
    except Exception as exc:
        raise DependencyException(f"release inventory: {exc}") from exc
