"""BillingRepository — local subscription rows mirrored from the billing provider."""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.models.enums import SubscriptionStatus
from src.models.subscription import Subscription

DEFAULT_RECONCILE_LIMIT = 250
DEFAULT_RECONCILE_LOOKBACK = timedelta(days=7)

_RECONCILE_STATUSES = (
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.TRIALING,
    SubscriptionStatus.PAST_DUE,
    SubscriptionStatus.INCOMPLETE,
    SubscriptionStatus.INCOMPLETE_EXPIRED,
    SubscriptionStatus.UNPAID,
    SubscriptionStatus.PAUSED,
)


class BillingRepository:
    """Subscription persistence.

    A repository built from a session factory opens a short-lived session per
    read. ``with_tx`` returns a view bound to the caller's transaction; reads
    through that view take row locks so a concurrent writer cannot interleave
    between the read and the update.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        tx: AsyncSession | None = None,
    ) -> None:
        if session_factory is None and tx is None:
            raise ValueError("session factory or transaction required")
        self._session_factory = session_factory
        self._tx = tx

    def with_tx(self, tx: AsyncSession) -> BillingRepository:
        return BillingRepository(self._session_factory, tx=tx)

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        if self._tx is not None:
            yield self._tx
            return
        async with self._session_factory() as session:
            yield session

    def _locked(self, statement):
        if self._tx is None:
            return statement
        return statement.with_for_update().execution_options(populate_existing=True)

    async def find_subscription(self, store_id: uuid.UUID) -> Subscription | None:
        """Latest subscription row for a store, whatever its status."""
        statement = (
            select(Subscription)
            .where(Subscription.store_id == store_id)
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
            .limit(1)
        )
        async with self._session() as session:
            result = await session.execute(self._locked(statement))
            return result.scalar_one_or_none()

    async def find_subscription_by_external_id(self, external_id: str) -> Subscription | None:
        statement = select(Subscription).where(Subscription.external_subscription_id == external_id)
        async with self._session() as session:
            result = await session.execute(self._locked(statement))
            return result.scalar_one_or_none()

    async def create_subscription(self, subscription: Subscription) -> Subscription:
        if self._tx is None:
            raise ValueError("transaction required")
        self._tx.add(subscription)
        await self._tx.flush()
        return subscription

    async def update_subscription(self, subscription: Subscription) -> Subscription:
        if self._tx is None:
            raise ValueError("transaction required")
        if subscription not in self._tx:
            subscription = await self._tx.merge(subscription)
        await self._tx.flush()
        return subscription

    async def list_subscriptions_for_reconciliation(
        self,
        limit: int = DEFAULT_RECONCILE_LIMIT,
        lookback: timedelta = DEFAULT_RECONCILE_LOOKBACK,
        now: datetime | None = None,
    ) -> list[Subscription]:
        """Rows whose provider state may still move.

        Live statuses, rows with a scheduled cancel or pause, and rows whose
        period ended within ``lookback`` are returned, most recently touched
        first.
        """
        if limit <= 0:
            limit = DEFAULT_RECONCILE_LIMIT
        if lookback <= timedelta(0):
            lookback = DEFAULT_RECONCILE_LOOKBACK
        cutoff = (now or datetime.now(UTC)) - lookback

        statement = (
            select(Subscription)
            .where(
                Subscription.external_subscription_id != "",
                or_(
                    Subscription.status.in_(_RECONCILE_STATUSES),
                    Subscription.cancel_at_period_end.is_(True),
                    Subscription.pause_effective_at.is_not(None),
                    Subscription.current_period_end >= cutoff,
                ),
            )
            .order_by(Subscription.updated_at.desc(), Subscription.id.desc())
            .limit(limit)
        )
        async with self._session() as session:
            result = await session.execute(statement)
            return list(result.scalars().all())
