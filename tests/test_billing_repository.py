"""Tests for BillingRepository."""

import uuid
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from src.models.enums import SubscriptionStatus
from src.models.subscription import Subscription
from src.modules.billing.repository import BillingRepository


def _sub(store_id: uuid.UUID, external_id: str, created_at: datetime, **fields) -> Subscription:
    return Subscription(
        store_id=store_id,
        external_subscription_id=external_id,
        status=fields.pop("status", SubscriptionStatus.ACTIVE),
        metadata_extra={},
        created_at=created_at,
        **fields,
    )


class TestBillingRepository:
    def test_requires_a_session_source(self):
        with pytest.raises(ValueError):
            BillingRepository()

    @pytest.mark.asyncio
    async def test_find_subscription_returns_latest_row(self, session_factory):
        store_id = uuid.uuid4()
        now = datetime(2026, 3, 1, tzinfo=UTC)
        async with session_factory() as session:
            async with session.begin():
                session.add(_sub(store_id, "sq_old", now - timedelta(days=60), status=SubscriptionStatus.CANCELED))
                session.add(_sub(store_id, "sq_new", now))

        repo = BillingRepository(session_factory)
        latest = await repo.find_subscription(store_id)

        assert latest.external_subscription_id == "sq_new"
        assert await repo.find_subscription(uuid.uuid4()) is None

    @pytest.mark.asyncio
    async def test_writes_require_a_transaction(self, session_factory):
        repo = BillingRepository(session_factory)
        with pytest.raises(ValueError, match="transaction required"):
            await repo.create_subscription(_sub(uuid.uuid4(), "sq_1", datetime.now(UTC)))

    @pytest.mark.asyncio
    async def test_create_and_update_through_transaction(self, session_factory, tx_runner):
        repo = BillingRepository(session_factory)
        store_id = uuid.uuid4()

        async def _create(tx):
            return await repo.with_tx(tx).create_subscription(_sub(store_id, "sq_1", datetime.now(UTC)))

        created = await tx_runner.with_tx(_create)
        assert created.id is not None

        async def _update(tx):
            tx_repo = repo.with_tx(tx)
            stored = await tx_repo.find_subscription_by_external_id("sq_1")
            stored.status = SubscriptionStatus.PAST_DUE
            await tx_repo.update_subscription(stored)

        await tx_runner.with_tx(_update)

        reloaded = await repo.find_subscription_by_external_id("sq_1")
        assert reloaded.status == SubscriptionStatus.PAST_DUE

    @pytest.mark.asyncio
    async def test_second_live_subscription_for_store_is_rejected(self, session_factory, tx_runner):
        repo = BillingRepository(session_factory)
        store_id = uuid.uuid4()
        now = datetime(2026, 3, 1, tzinfo=UTC)

        async def _create(external_id, created_at=now, **fields):
            async def _fn(tx):
                return await repo.with_tx(tx).create_subscription(_sub(store_id, external_id, created_at, **fields))

            return await tx_runner.with_tx(_fn)

        await _create("sq_canceled", now - timedelta(days=30), status=SubscriptionStatus.CANCELED)
        await _create("sq_live")
        with pytest.raises(IntegrityError):
            await _create("sq_duplicate", status=SubscriptionStatus.PAUSED)

        latest = await repo.find_subscription(store_id)
        assert latest.external_subscription_id == "sq_live"
