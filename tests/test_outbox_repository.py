"""Tests for OutboxRepository bookkeeping and the DLQ sink."""

import uuid
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select

from src.models.enums import OutboxAggregateType, OutboxDLQErrorReason, OutboxEventType
from src.models.outbox_dlq import OutboxDLQ
from src.models.outbox_event import OutboxEvent
from src.modules.events.dlq_repository import OutboxDLQRepository
from src.modules.events.outbox_repository import MAX_LAST_ERROR_LENGTH, OutboxRepository


def _row(**overrides) -> OutboxEvent:
    values = dict(
        id=uuid.uuid4(),
        event_type=OutboxEventType.ORDER_EXPIRED,
        aggregate_type=OutboxAggregateType.VENDOR_ORDER,
        aggregate_id=uuid.uuid4(),
        payload={"version": 1, "data": {}},
        attempt_count=0,
    )
    values.update(overrides)
    return OutboxEvent(**values)


async def _seed(session_factory, *rows):
    async with session_factory() as session:
        async with session.begin():
            session.add_all(rows)


async def _reload(session_factory, event_id):
    async with session_factory() as session:
        return await session.get(OutboxEvent, event_id)


class TestPublishBookkeeping:
    @pytest.mark.asyncio
    async def test_mark_published_removes_row_from_unpublished(self, session_factory, tx_runner):
        repository = OutboxRepository(session_factory)
        first, second = _row(), _row()
        await _seed(session_factory, first, second)

        await tx_runner.with_tx(lambda tx: repository.mark_published(tx, first.id))

        pending = await repository.fetch_unpublished()
        assert [p.id for p in pending] == [second.id]
        assert (await _reload(session_factory, first.id)).published_at is not None

    @pytest.mark.asyncio
    async def test_mark_failed_increments_and_truncates(self, session_factory, tx_runner):
        repository = OutboxRepository(session_factory)
        row = _row(attempt_count=2)
        await _seed(session_factory, row)

        await tx_runner.with_tx(lambda tx: repository.mark_failed(tx, row.id, "x" * 5000))

        reloaded = await _reload(session_factory, row.id)
        assert reloaded.attempt_count == 3
        assert len(reloaded.last_error) == MAX_LAST_ERROR_LENGTH

    @pytest.mark.asyncio
    async def test_mark_terminal_never_lowers_attempts(self, session_factory, tx_runner):
        repository = OutboxRepository(session_factory)
        low, high = _row(attempt_count=1), _row(attempt_count=9)
        await _seed(session_factory, low, high)

        async def _terminal(tx):
            await repository.mark_terminal(tx, low.id, "bad payload", 5)
            await repository.mark_terminal(tx, high.id, "bad payload", 5)

        await tx_runner.with_tx(_terminal)

        assert (await _reload(session_factory, low.id)).attempt_count == 5
        assert (await _reload(session_factory, high.id)).attempt_count == 9

    @pytest.mark.asyncio
    async def test_fetch_for_publish_skips_exhausted_rows(self, session_factory, tx_runner):
        repository = OutboxRepository(session_factory)
        fresh, exhausted = _row(attempt_count=1), _row(attempt_count=5)
        await _seed(session_factory, fresh, exhausted)

        batch = await tx_runner.with_tx(
            lambda tx: repository.fetch_unpublished_for_publish(tx, limit=10, max_attempts=5)
        )
        assert [r.id for r in batch] == [fresh.id]


class TestRetentionDelete:
    @pytest.mark.asyncio
    async def test_min_attempts_filters_published_rows(self, session_factory, tx_runner):
        repository = OutboxRepository(session_factory)
        now = datetime.now(UTC)
        old = now - timedelta(days=31)
        few_attempts = _row(published_at=old, attempt_count=4)
        enough_attempts = _row(published_at=old, attempt_count=5)
        unpublished = _row(published_at=None, attempt_count=9, created_at=old)
        await _seed(session_factory, few_attempts, enough_attempts, unpublished)

        deleted = await tx_runner.with_tx(
            lambda tx: repository.delete_published_before(tx, now - timedelta(days=30), 5)
        )

        assert deleted == 1
        assert await _reload(session_factory, enough_attempts.id) is None
        assert await _reload(session_factory, few_attempts.id) is not None
        assert await _reload(session_factory, unpublished.id) is not None

    @pytest.mark.asyncio
    async def test_zero_min_attempts_deletes_every_old_published_row(self, session_factory, tx_runner):
        repository = OutboxRepository(session_factory)
        now = datetime.now(UTC)
        old = _row(published_at=now - timedelta(days=40), attempt_count=0)
        recent = _row(published_at=now - timedelta(days=1), attempt_count=0)
        await _seed(session_factory, old, recent)

        deleted = await tx_runner.with_tx(
            lambda tx: repository.delete_published_before(tx, now - timedelta(days=30), 0)
        )

        assert deleted == 1
        assert await _reload(session_factory, recent.id) is not None


class TestDLQ:
    @pytest.mark.asyncio
    async def test_move_event_keeps_event_id_and_truncates_message(self, session_factory, tx_runner):
        dlq = OutboxDLQRepository(session_factory)
        row = _row(attempt_count=7)
        await _seed(session_factory, row)

        await tx_runner.with_tx(
            lambda tx: dlq.move_event(tx, row, OutboxDLQErrorReason.MAX_ATTEMPTS, "e" * 3000)
        )

        entry = await dlq.find_by_event_id(row.id)
        assert entry is not None
        assert entry.error_reason == OutboxDLQErrorReason.MAX_ATTEMPTS
        assert entry.attempt_count == 7
        assert entry.payload == row.payload
        assert len(entry.error_message) == MAX_LAST_ERROR_LENGTH

    @pytest.mark.asyncio
    async def test_list_orders_by_failed_at_desc(self, session_factory, tx_runner):
        dlq = OutboxDLQRepository(session_factory)
        now = datetime.now(UTC)

        async def _insert(tx):
            for offset in (3, 1, 2):
                await dlq.insert(
                    tx,
                    OutboxDLQ(
                        event_id=uuid.uuid4(),
                        event_type=OutboxEventType.LICENSE_EXPIRED,
                        aggregate_type=OutboxAggregateType.LICENSE,
                        aggregate_id=uuid.uuid4(),
                        payload={},
                        error_reason=OutboxDLQErrorReason.NON_RETRYABLE,
                        error_message=f"offset {offset}",
                        failed_at=now - timedelta(hours=offset),
                    ),
                )

        await tx_runner.with_tx(_insert)

        entries = await dlq.list(limit=2)
        assert [e.error_message for e in entries] == ["offset 1", "offset 2"]

    @pytest.mark.asyncio
    async def test_find_by_event_id_returns_none_when_absent(self, session_factory):
        dlq = OutboxDLQRepository(session_factory)
        assert await dlq.find_by_event_id(uuid.uuid4()) is None

    @pytest.mark.asyncio
    async def test_dlq_table_starts_empty(self, session_factory):
        async with session_factory() as session:
            result = await session.execute(select(OutboxDLQ))
            assert result.scalars().all() == []
