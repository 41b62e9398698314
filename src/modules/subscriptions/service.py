"""SubscriptionService — on-demand subscription lifecycle against the billing provider.

Every write follows the same shape: talk to the provider first, then open a
transaction, re-read the local row under a lock, project the provider snapshot
onto it and update ``store.subscription_active`` in the same transaction.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.database.transaction import TransactionRunner
from src.exceptions import (
    DependencyException,
    NotFoundException,
    StateConflictException,
    ValidationException,
    wrap,
)
from src.models.enums import SubscriptionStatus
from src.models.subscription import Subscription
from src.modules.billing.repository import BillingRepository
from src.modules.stores.repository import StoreRepository
from src.modules.subscriptions.entitlement import apply_pending_actions, pending_pause_action
from src.modules.subscriptions.errors import is_cancel_already_scheduled, is_pause_already_scheduled
from src.modules.subscriptions.mapper import (
    build_subscription_from_provider,
    from_unix,
    is_active_status,
    update_subscription_from_provider,
)
from src.modules.subscriptions.provider import (
    BillingProvider,
    CancelParams,
    PauseParams,
    ProviderSubscription,
    ResumeParams,
    SubscriptionParams,
)
from src.modules.subscriptions.schemas import CreateSubscriptionInput

logger = logging.getLogger(__name__)

Mutator = Callable[[Subscription], None]


def _provider_params(store_id: uuid.UUID, price_id: str | None, include_actions: bool = True) -> SubscriptionParams:
    return SubscriptionParams(
        price_id=price_id or "",
        metadata={"store_id": str(store_id)},
        include_actions=include_actions,
    )


def pause_effective_date_for(
    live: ProviderSubscription | None, stored: Subscription | None, now: datetime
) -> str:
    """``YYYY-MM-DD`` on which a pause should start: the end of the paid period when known."""
    if live is not None and live.charged_through_date:
        return from_unix(live.charged_through_date).strftime("%Y-%m-%d")
    if stored is not None and stored.current_period_end is not None:
        return stored.current_period_end.astimezone(UTC).strftime("%Y-%m-%d")
    return now.astimezone(UTC).strftime("%Y-%m-%d")


class SubscriptionService:
    def __init__(
        self,
        billing_repository: BillingRepository,
        store_repository: StoreRepository,
        provider: BillingProvider,
        tx_runner: TransactionRunner,
        default_price_id: str,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if billing_repository is None:
            raise ValueError("billing repository required")
        if store_repository is None:
            raise ValueError("store repository required")
        if provider is None:
            raise ValueError("billing provider required")
        if tx_runner is None:
            raise ValueError("transaction runner required")
        if not (default_price_id or "").strip():
            raise ValueError("default price id required")
        self.billing = billing_repository
        self.stores = store_repository
        self.provider = provider
        self.tx_runner = tx_runner
        self.default_price_id = default_price_id.strip()
        self._clock = clock or (lambda: datetime.now(UTC))

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @staticmethod
    def _require_store_id(store_id: uuid.UUID | None) -> None:
        if store_id is None or store_id == uuid.UUID(int=0):
            raise ValidationException("store id is required")

    async def _find_subscription(self, repo: BillingRepository, store_id: uuid.UUID) -> Subscription | None:
        try:
            return await repo.find_subscription(store_id)
        except Exception as exc:
            raise wrap(DependencyException, exc, "lookup subscription") from exc

    async def _find_active(self, repo: BillingRepository, store_id: uuid.UUID) -> Subscription | None:
        sub = await self._find_subscription(repo, store_id)
        if sub is None or not is_active_status(sub.status):
            return None
        return sub

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def create(
        self, store_id: uuid.UUID, data: CreateSubscriptionInput
    ) -> tuple[Subscription, bool]:
        """Start a subscription for ``store_id``.

        Returns ``(subscription, created_now)``. When the store already has a
        present subscription it is returned unchanged with ``created_now=False``.
        """
        self._require_store_id(store_id)
        customer_id = data.square_customer_id.strip()
        if not customer_id:
            raise ValidationException("square_customer_id is required")
        payment_method_id = data.square_payment_method_id.strip()
        if not payment_method_id:
            raise ValidationException("square_payment_method_id is required")
        price_id = data.price_id.strip() or self.default_price_id
        if not price_id:
            raise ValidationException("price_id is required")

        existing = await self._find_active(self.billing, store_id)
        if existing is not None:
            return existing, False

        try:
            created = await self.provider.create(
                SubscriptionParams(
                    customer_id=customer_id,
                    price_id=price_id,
                    payment_method_id=payment_method_id,
                    metadata={"store_id": str(store_id)},
                )
            )
        except Exception as exc:
            raise wrap(DependencyException, exc, "create square subscription") from exc

        created_id = created.id
        try:
            snapshot = await self.provider.get(created_id, _provider_params(store_id, price_id))
            if snapshot is None:
                raise NotFoundException("square subscription not found")
        except Exception as exc:
            await self._cancel_provider(created_id, "get failure")
            raise wrap(DependencyException, exc, "get square subscription") from exc

        state: dict = {"skipped": False, "existing": None}

        async def _persist(tx: AsyncSession) -> Subscription | None:
            repo = self.billing.with_tx(tx)
            active = await self._find_active(repo, store_id)
            if active is not None:
                state["skipped"] = True
                state["existing"] = active
                return None

            sub = build_subscription_from_provider(
                snapshot, store_id, price_id, customer_id, payment_method_id
            )
            await repo.create_subscription(sub)
            await self.stores.find_by_id(tx, store_id)
            await self.stores.update_subscription_active(tx, store_id, is_active_status(sub.status))
            return sub

        try:
            sub = await self.tx_runner.with_tx(_persist)
        except Exception as exc:
            if not state["skipped"]:
                await self._cancel_provider(snapshot.id, "db error")
            raise wrap(DependencyException, exc, "persist subscription") from exc

        if state["skipped"]:
            await self._cancel_provider(snapshot.id, "race")
            return state["existing"], False

        logger.info(
            "Subscription created store_id=%s external_id=%s status=%s",
            store_id, sub.external_subscription_id, sub.status.value,
        )
        return sub, True

    async def cancel(self, store_id: uuid.UUID) -> None:
        self._require_store_id(store_id)
        active = await self._find_active(self.billing, store_id)
        if active is None:
            await self._ensure_store_flag(store_id, False)
            return

        try:
            snapshot = await self.provider.cancel(active.external_subscription_id, CancelParams())
        except Exception as exc:
            if is_cancel_already_scheduled(exc):
                logger.info("Cancel already scheduled store_id=%s; syncing", store_id)
                await self.sync_provider_subscription(
                    store_id, active.external_subscription_id, active.price_id
                )
                return
            raise wrap(DependencyException, exc, "cancel square subscription") from exc

        async def _persist(tx: AsyncSession) -> None:
            repo = self.billing.with_tx(tx)
            stored = await self._find_active(repo, store_id)
            if stored is None:
                raise NotFoundException("subscription not found")
            update_subscription_from_provider(stored, snapshot, stored.price_id)
            await repo.update_subscription(stored)
            await self.stores.update_subscription_active(tx, store_id, False)

        try:
            await self.tx_runner.with_tx(_persist)
        except Exception as exc:
            raise wrap(DependencyException, exc, "persist cancellation") from exc
        logger.info("Subscription canceled store_id=%s", store_id)

    async def pause(self, store_id: uuid.UUID) -> None:
        self._require_store_id(store_id)
        sub = await self._find_subscription(self.billing, store_id)
        if sub is None:
            raise NotFoundException("subscription not found")
        external_id = (sub.external_subscription_id or "").strip()
        if not external_id:
            raise StateConflictException("square subscription id missing")

        try:
            live = await self.provider.get(external_id, _provider_params(store_id, sub.price_id))
        except Exception as exc:
            raise wrap(DependencyException, exc, "get square subscription") from exc
        if live is None:
            raise NotFoundException("square subscription not found")
        if (live.status or "").upper() != "ACTIVE":
            raise StateConflictException(f"subscription not active in Square (status={live.status})")

        now = self._clock()
        params = PauseParams(
            price_id=sub.price_id or "",
            pause_effective_date=pause_effective_date_for(live, sub, now),
        )
        try:
            paused = await self.provider.pause(external_id, params)
        except Exception as exc:
            if is_pause_already_scheduled(exc):
                logger.info("Pause already scheduled store_id=%s; syncing", store_id)
                await self.sync_provider_subscription(store_id, external_id, sub.price_id)
                return
            raise wrap(DependencyException, exc, "pause square subscription") from exc

        def _mark_paused(stored: Subscription) -> None:
            stored.status = SubscriptionStatus.PAUSED
            stored.paused_at = now

        await self.persist_provider_update(store_id, paused, _mark_paused)
        logger.info("Subscription paused store_id=%s effective=%s", store_id, params.pause_effective_date)

    async def resume(self, store_id: uuid.UUID) -> None:
        self._require_store_id(store_id)
        sub = await self._find_subscription(self.billing, store_id)
        if sub is None:
            raise NotFoundException("subscription not found")
        external_id = sub.external_subscription_id

        try:
            live = await self.provider.get(external_id, _provider_params(store_id, sub.price_id))
        except Exception as exc:
            raise wrap(DependencyException, exc, "get square subscription before resume") from exc
        if live is None:
            raise NotFoundException("square subscription not found")

        def _clear_pause(stored: Subscription) -> None:
            stored.paused_at = None
            stored.pause_effective_at = None

        if (live.status or "").upper() == "ACTIVE":
            pause = pending_pause_action(live.actions)
            if pause is None:
                return
            try:
                await self.provider.delete_action(external_id, pause.id)
            except Exception as exc:
                raise wrap(StateConflictException, exc, "delete scheduled pause") from exc
            logger.info("Scheduled pause removed store_id=%s action_id=%s", store_id, pause.id)
            try:
                refreshed = await self.provider.get(external_id, _provider_params(store_id, sub.price_id))
            except Exception as exc:
                raise wrap(DependencyException, exc, "get square subscription after resume") from exc
            if refreshed is None:
                raise NotFoundException("square subscription not found")
            await self.persist_provider_update(store_id, refreshed, _clear_pause)
            return

        try:
            resumed = await self.provider.resume(external_id, ResumeParams(price_id=sub.price_id or ""))
        except Exception as exc:
            raise wrap(DependencyException, exc, "resume square subscription") from exc

        await self.persist_provider_update(store_id, resumed, _clear_pause)
        logger.info("Subscription resumed store_id=%s", store_id)

    async def get_active(self, store_id: uuid.UUID) -> Subscription | None:
        self._require_store_id(store_id)
        sub = await self._find_active(self.billing, store_id)
        if sub is None:
            return None
        await self.sync_provider_subscription(store_id, sub.external_subscription_id, sub.price_id)
        return await self._find_active(self.billing, store_id)

    # ------------------------------------------------------------------
    # Shared write path
    # ------------------------------------------------------------------

    async def persist_provider_update(
        self,
        store_id: uuid.UUID,
        snapshot: ProviderSubscription,
        mutate: Mutator | None = None,
    ) -> Subscription:
        async def _persist(tx: AsyncSession) -> Subscription:
            repo = self.billing.with_tx(tx)
            stored = await self._find_subscription(repo, store_id)
            if stored is None:
                raise NotFoundException("subscription not found")
            update_subscription_from_provider(stored, snapshot, stored.price_id)
            apply_pending_actions(stored, snapshot.actions)
            if mutate is not None:
                mutate(stored)
            await repo.update_subscription(stored)
            await self.stores.update_subscription_active(tx, store_id, is_active_status(stored.status))
            return stored

        return await self.tx_runner.with_tx(_persist)

    async def sync_provider_subscription(
        self, store_id: uuid.UUID, external_id: str, price_id: str | None = None
    ) -> Subscription:
        if not (external_id or "").strip():
            raise ValidationException("square subscription id is required")
        try:
            snapshot = await self.provider.get(external_id, _provider_params(store_id, price_id))
        except Exception as exc:
            raise wrap(DependencyException, exc, "get square subscription") from exc
        if snapshot is None:
            raise NotFoundException("square subscription not found")
        try:
            return await self.persist_provider_update(store_id, snapshot)
        except Exception as exc:
            raise wrap(DependencyException, exc, "persist square subscription") from exc

    async def _ensure_store_flag(self, store_id: uuid.UUID, active: bool) -> None:
        async def _apply(tx: AsyncSession) -> None:
            store = await self.stores.find_by_id(tx, store_id)
            if store.subscription_active == active:
                return
            store.subscription_active = active
            await self.stores.update(tx, store)

        await self.tx_runner.with_tx(_apply)

    async def _cancel_provider(self, external_id: str, reason: str) -> None:
        """Best-effort rollback of a provider subscription this service just created."""
        try:
            await self.provider.cancel(external_id, CancelParams())
        except Exception:
            logger.exception(
                "Failed to cancel provider subscription after %s external_id=%s", reason, external_id
            )
