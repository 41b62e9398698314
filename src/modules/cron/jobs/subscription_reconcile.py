"""Periodic sync of local subscriptions with the billing provider."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from src.database.transaction import TransactionRunner
from src.exceptions import DependencyException, combine_errors, wrap
from src.models.subscription import Subscription
from src.modules.billing.repository import BillingRepository
from src.modules.stores.repository import StoreRepository
from src.modules.subscriptions.entitlement import apply_pending_actions, derive_entitlement_active
from src.modules.subscriptions.mapper import update_subscription_from_provider
from src.modules.subscriptions.provider import BillingProvider, ProviderSubscription, SubscriptionParams

logger = logging.getLogger(__name__)

RECONCILE_LIMIT = 250
RECONCILE_LOOKBACK = timedelta(days=7)


class SubscriptionReconcileJob:
    """Pulls provider state for a bounded candidate set.

    Each subscription is synced in its own transaction; a failure is recorded
    and the loop moves on to the next candidate.
    """

    def __init__(
        self,
        *,
        tx_runner: TransactionRunner,
        billing_repository: BillingRepository,
        store_repository: StoreRepository,
        provider: BillingProvider,
        limit: int = RECONCILE_LIMIT,
        lookback: timedelta = RECONCILE_LOOKBACK,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if tx_runner is None:
            raise ValueError("transaction runner required")
        if billing_repository is None:
            raise ValueError("billing repository required")
        if store_repository is None:
            raise ValueError("store repository required")
        if provider is None:
            raise ValueError("billing provider required")
        self.tx_runner = tx_runner
        self.billing = billing_repository
        self.stores = store_repository
        self.provider = provider
        self.limit = limit if limit > 0 else RECONCILE_LIMIT
        self.lookback = lookback if lookback and lookback > timedelta(0) else RECONCILE_LOOKBACK
        self._clock = clock or (lambda: datetime.now(UTC))

    def name(self) -> str:
        return "subscription-reconcile"

    def _now(self) -> datetime:
        return self._clock().astimezone(UTC)

    async def run(self) -> None:
        try:
            candidates = await self.billing.list_subscriptions_for_reconciliation(
                self.limit, self.lookback, now=self._now()
            )
        except Exception as exc:
            raise wrap(DependencyException, exc, "list subscriptions for reconciliation") from exc

        errors = []
        synced = 0
        for sub in candidates:
            try:
                if await self.reconcile(sub):
                    synced += 1
            except Exception as exc:
                logger.warning(
                    "subscription reconcile failed subscription_id=%s external_id=%s: %s",
                    sub.id, sub.external_subscription_id, exc,
                )
                errors.append(wrap(DependencyException, exc, f"reconcile subscription={sub.id}"))
        logger.info(
            "subscription reconcile loop complete candidates=%d synced=%d", len(candidates), synced
        )
        error = combine_errors(errors)
        if error is not None:
            raise error

    async def reconcile(self, sub: Subscription) -> bool:
        external_id = (sub.external_subscription_id or "").strip()
        if not external_id:
            return False
        snapshot = await self.provider.get(
            external_id,
            SubscriptionParams(
                price_id=sub.price_id or "",
                metadata={"store_id": str(sub.store_id)},
                include_actions=True,
            ),
        )
        if snapshot is None:
            logger.warning("provider has no subscription external_id=%s", external_id)
            return False
        return await self.tx_runner.with_tx(lambda tx: self._apply(tx, external_id, snapshot))

    async def _apply(self, tx: AsyncSession, external_id: str, snapshot: ProviderSubscription) -> bool:
        repo = self.billing.with_tx(tx)
        stored = await repo.find_subscription_by_external_id(external_id)
        if stored is None:
            return False
        update_subscription_from_provider(stored, snapshot, stored.price_id)
        apply_pending_actions(stored, snapshot.actions)
        await repo.update_subscription(stored)
        await self.stores.update_subscription_active(
            tx, stored.store_id, derive_entitlement_active(self._now(), snapshot, stored)
        )
        return True
