"""Vendor orders stuck in created_pending: nudge after a few days, expire later."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from src.database.transaction import TransactionRunner
from src.exceptions import DependencyException, combine_errors, wrap
from src.models.enums import LineItemStatus, OutboxAggregateType, OutboxEventType, VendorOrderStatus
from src.models.vendor_order import VendorOrder
from src.modules.events.outbox_repository import OutboxRepository
from src.modules.events.outbox_service import DomainEvent, OutboxService
from src.modules.events.payloads import OrderExpiredEvent, OrderPendingNudgeEvent
from src.modules.orders.inventory import InventoryReleaser, release_line_item_inventory
from src.modules.orders.repository import VendorOrderRepository

logger = logging.getLogger(__name__)

PENDING_NUDGE_DAYS = 5
ORDER_EXPIRATION_DAYS = 10

_SETTLED_LINE_STATUSES = {LineItemStatus.FULFILLED, LineItemStatus.REJECTED}


class OrderTTLJob:
    def __init__(
        self,
        *,
        tx_runner: TransactionRunner,
        order_repository: VendorOrderRepository,
        inventory: InventoryReleaser,
        outbox: OutboxService,
        outbox_repository: OutboxRepository,
        nudge_days: int = PENDING_NUDGE_DAYS,
        expiration_days: int = ORDER_EXPIRATION_DAYS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if tx_runner is None:
            raise ValueError("transaction runner required")
        if order_repository is None:
            raise ValueError("order repository required")
        if inventory is None:
            raise ValueError("inventory releaser required")
        if outbox is None:
            raise ValueError("outbox service required")
        if outbox_repository is None:
            raise ValueError("outbox repository required")
        self.tx_runner = tx_runner
        self.orders = order_repository
        self.inventory = inventory
        self.outbox = outbox
        self.outbox_repository = outbox_repository
        self.nudge_days = nudge_days if nudge_days > 0 else PENDING_NUDGE_DAYS
        self.expiration_days = expiration_days if expiration_days > 0 else ORDER_EXPIRATION_DAYS
        self._clock = clock or (lambda: datetime.now(UTC))

    def name(self) -> str:
        return "order-ttl"

    def _now(self) -> datetime:
        return self._clock().astimezone(UTC)

    async def run(self) -> None:
        errors = []
        for step in (self.nudge_pending_orders, self.expire_pending_orders):
            try:
                await step()
            except Exception as exc:
                errors.append(exc)
        error = combine_errors(errors)
        if error is not None:
            raise error

    async def nudge_pending_orders(self) -> int:
        cutoff = self._now() - timedelta(days=self.nudge_days)
        try:
            orders = await self.orders.find_pending_orders_before(cutoff)
        except Exception as exc:
            raise wrap(DependencyException, exc, "query pending orders for nudge") from exc

        count = 0
        for order in orders:
            exists = await self.outbox_repository.exists(
                OutboxEventType.ORDER_PENDING_NUDGE, OutboxAggregateType.VENDOR_ORDER, order.id
            )
            if exists:
                continue
            await self.tx_runner.with_tx(lambda tx, order=order: self._emit_nudge(tx, order))
            count += 1
        logger.info("order pending nudge loop complete count=%d", count)
        return count

    async def _emit_nudge(self, tx: AsyncSession, order: VendorOrder) -> None:
        await self.outbox.emit(
            tx,
            DomainEvent(
                event_type=OutboxEventType.ORDER_PENDING_NUDGE,
                aggregate_type=OutboxAggregateType.VENDOR_ORDER,
                aggregate_id=order.id,
                data=OrderPendingNudgeEvent(
                    order_id=order.id,
                    checkout_group_id=order.checkout_group_id,
                    buyer_store_id=order.buyer_store_id,
                    vendor_store_id=order.vendor_store_id,
                    pending_days=self.nudge_days,
                ),
                occurred_at=self._now(),
            ),
        )

    async def expire_pending_orders(self) -> int:
        cutoff = self._now() - timedelta(days=self.expiration_days)
        try:
            orders = await self.orders.find_pending_orders_before(cutoff)
        except Exception as exc:
            raise wrap(DependencyException, exc, "query pending orders for expiration") from exc

        count = 0
        for order in orders:
            if await self.tx_runner.with_tx(lambda tx, order=order: self._expire_order(tx, order)):
                count += 1
        logger.info("order expiration loop complete count=%d", count)
        return count

    async def _expire_order(self, tx: AsyncSession, order: VendorOrder) -> bool:
        """Expire one order under its row lock. Returns False if it left created_pending meanwhile."""
        current = await self.orders.find_for_update(tx, order.id)
        if current.status != VendorOrderStatus.CREATED_PENDING:
            return False

        for item in current.line_items:
            if item.status in _SETTLED_LINE_STATUSES:
                continue
            await release_line_item_inventory(tx, item, self.inventory)
            await self.orders.update_line_item_status(tx, item.id, LineItemStatus.REJECTED)

        now = self._now()
        await self.orders.mark_expired(tx, current.id, now)
        await self.outbox.emit(
            tx,
            DomainEvent(
                event_type=OutboxEventType.ORDER_EXPIRED,
                aggregate_type=OutboxAggregateType.VENDOR_ORDER,
                aggregate_id=current.id,
                data=OrderExpiredEvent(
                    order_id=current.id,
                    checkout_group_id=current.checkout_group_id,
                    buyer_store_id=current.buyer_store_id,
                    vendor_store_id=current.vendor_store_id,
                    expired_at=now,
                ),
                occurred_at=now,
            ),
        )
        return True
