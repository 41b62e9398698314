"""End-to-end tests for the license lifecycle job on the SQLite test database."""

import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from src.exceptions import DependencyException
from src.models.enums import (
    KYCStatus,
    LicenseStatus,
    MediaKind,
    MediaStatus,
    OutboxAggregateType,
    OutboxEventType,
)
from src.models.license import License
from src.models.media import Media
from src.models.media_attachment import ATTACHMENT_ENTITY_LICENSE, MediaAttachment
from src.models.outbox_event import OutboxEvent
from src.models.store import Store
from src.modules.cron.jobs.license_lifecycle import LicenseLifecycleJob
from src.modules.events.outbox_repository import OutboxRepository
from src.modules.events.outbox_service import OutboxService
from src.modules.licenses.repository import LicenseRepository
from src.modules.media.repository import AttachmentRepository, MediaRepository
from src.modules.stores.repository import StoreRepository

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _make_job(session_factory, tx_runner, storage=None) -> LicenseLifecycleJob:
    outbox_repository = OutboxRepository(session_factory)
    return LicenseLifecycleJob(
        tx_runner=tx_runner,
        license_repository=LicenseRepository(session_factory),
        store_repository=StoreRepository(),
        media_repository=MediaRepository(session_factory),
        attachment_repository=AttachmentRepository(session_factory),
        outbox=OutboxService(outbox_repository),
        outbox_repository=outbox_repository,
        storage=storage,
        bucket="license-docs",
        clock=lambda: NOW,
    )


async def _seed_license(
    session_factory,
    *,
    status: LicenseStatus,
    expiration_date: datetime | None,
    kyc_status: KYCStatus = KYCStatus.VERIFIED,
    with_attachment: bool = False,
) -> License:
    store = Store(id=uuid.uuid4(), company_name="Green Leaf", kyc_status=kyc_status)
    media = Media(
        id=uuid.uuid4(),
        store_id=store.id,
        kind=MediaKind.LICENSE_DOC,
        status=MediaStatus.READY,
        storage_key=f"licenses/{uuid.uuid4()}.pdf",
    )
    lic = License(
        id=uuid.uuid4(),
        store_id=store.id,
        media_id=media.id,
        media=media,
        status=status,
        expiration_date=expiration_date,
        number=f"LIC-{uuid.uuid4().hex[:8]}",
    )
    async with session_factory() as session:
        async with session.begin():
            session.add_all([store, media, lic])
            if with_attachment:
                session.add(
                    MediaAttachment(
                        media_id=media.id,
                        entity_type=ATTACHMENT_ENTITY_LICENSE,
                        entity_id=lic.id,
                        store_id=store.id,
                        storage_key=media.storage_key,
                    )
                )
    return lic


async def _outbox_rows(session_factory, event_type: OutboxEventType) -> list[OutboxEvent]:
    async with session_factory() as session:
        result = await session.execute(select(OutboxEvent).where(OutboxEvent.event_type == event_type))
        return list(result.scalars().all())


class TestConstruction:
    @pytest.mark.asyncio
    async def test_missing_collaborator_is_rejected(self, session_factory, tx_runner):
        with pytest.raises(ValueError, match="outbox service required"):
            LicenseLifecycleJob(
                tx_runner=tx_runner,
                license_repository=LicenseRepository(session_factory),
                store_repository=StoreRepository(),
                media_repository=MediaRepository(session_factory),
                attachment_repository=AttachmentRepository(session_factory),
                outbox=None,
                outbox_repository=OutboxRepository(session_factory),
            )

    @pytest.mark.asyncio
    async def test_name(self, session_factory, tx_runner):
        assert _make_job(session_factory, tx_runner).name() == "license-lifecycle"


class TestWarnPass:
    @pytest.mark.asyncio
    async def test_warning_emitted_once_across_runs(self, session_factory, tx_runner):
        expires = datetime(2026, 3, 15, 18, 30, tzinfo=UTC)
        lic = await _seed_license(session_factory, status=LicenseStatus.VERIFIED, expiration_date=expires)
        job = _make_job(session_factory, tx_runner)

        assert await job.warn_expiring() == 1
        assert await job.warn_expiring() == 0

        rows = await _outbox_rows(session_factory, OutboxEventType.LICENSE_EXPIRING_SOON)
        assert len(rows) == 1
        assert rows[0].aggregate_type == OutboxAggregateType.LICENSE
        assert rows[0].aggregate_id == lic.id
        data = rows[0].payload["data"]
        assert data["licenseId"] == str(lic.id)
        assert data["storeId"] == str(lic.store_id)
        assert data["daysUntilExpiration"] == 14

    @pytest.mark.asyncio
    async def test_only_verified_licenses_on_the_target_day(self, session_factory, tx_runner):
        await _seed_license(
            session_factory, status=LicenseStatus.PENDING, expiration_date=datetime(2026, 3, 15, tzinfo=UTC)
        )
        await _seed_license(
            session_factory, status=LicenseStatus.VERIFIED, expiration_date=datetime(2026, 3, 16, tzinfo=UTC)
        )
        job = _make_job(session_factory, tx_runner)

        assert await job.warn_expiring() == 0
        assert await _outbox_rows(session_factory, OutboxEventType.LICENSE_EXPIRING_SOON) == []


class TestExpirePass:
    @pytest.mark.asyncio
    async def test_expire_cascades_to_store_and_outbox(self, session_factory, tx_runner):
        expired_on = NOW - timedelta(days=1)
        lic = await _seed_license(session_factory, status=LicenseStatus.VERIFIED, expiration_date=expired_on)
        job = _make_job(session_factory, tx_runner)

        assert await job.expire_licenses() == 1

        async with session_factory() as session:
            reloaded = await session.get(License, lic.id)
            store = await session.get(Store, lic.store_id)
        assert reloaded.status == LicenseStatus.EXPIRED
        assert store.kyc_status == KYCStatus.EXPIRED

        rows = await _outbox_rows(session_factory, OutboxEventType.LICENSE_EXPIRED)
        assert len(rows) == 1
        data = rows[0].payload["data"]
        assert data["licenseId"] == str(lic.id)
        assert datetime.fromisoformat(data["expiredAt"].replace("Z", "+00:00")) == NOW
        assert datetime.fromisoformat(data["expirationDate"].replace("Z", "+00:00")) == expired_on

    @pytest.mark.asyncio
    async def test_licenses_outside_window_untouched(self, session_factory, tx_runner):
        too_old = await _seed_license(
            session_factory, status=LicenseStatus.VERIFIED, expiration_date=NOW - timedelta(days=45)
        )
        future = await _seed_license(
            session_factory, status=LicenseStatus.VERIFIED, expiration_date=NOW + timedelta(days=1)
        )
        job = _make_job(session_factory, tx_runner)

        assert await job.expire_licenses() == 0

        async with session_factory() as session:
            assert (await session.get(License, too_old.id)).status == LicenseStatus.VERIFIED
            assert (await session.get(License, future.id)).status == LicenseStatus.VERIFIED


class TestHardDeletePass:
    @pytest.mark.asyncio
    async def test_purges_rows_and_storage_object(self, session_factory, tx_runner):
        lic = await _seed_license(
            session_factory,
            status=LicenseStatus.EXPIRED,
            expiration_date=NOW - timedelta(days=31),
            kyc_status=KYCStatus.EXPIRED,
            with_attachment=True,
        )
        storage = AsyncMock()
        job = _make_job(session_factory, tx_runner, storage=storage)

        assert await job.delete_expired() == 1

        storage.delete_object.assert_awaited_once_with("license-docs", lic.media.storage_key)
        async with session_factory() as session:
            assert await session.get(License, lic.id) is None
            assert await session.get(Media, lic.media_id) is None
            attachments = await session.execute(
                select(MediaAttachment).where(MediaAttachment.media_id == lic.media_id)
            )
            assert attachments.scalars().all() == []
            store = await session.get(Store, lic.store_id)
        assert store.kyc_status == KYCStatus.PENDING_VERIFICATION

    @pytest.mark.asyncio
    async def test_storage_failure_keeps_rows(self, session_factory, tx_runner):
        lic = await _seed_license(
            session_factory,
            status=LicenseStatus.EXPIRED,
            expiration_date=NOW - timedelta(days=40),
            with_attachment=True,
        )
        storage = AsyncMock()
        storage.delete_object.side_effect = DependencyException("delete object: access denied")
        job = _make_job(session_factory, tx_runner, storage=storage)

        with pytest.raises(DependencyException):
            await job.delete_expired()

        async with session_factory() as session:
            assert await session.get(License, lic.id) is not None
            assert await session.get(Media, lic.media_id) is not None

    @pytest.mark.asyncio
    async def test_without_storage_only_rows_are_deleted(self, session_factory, tx_runner):
        lic = await _seed_license(
            session_factory, status=LicenseStatus.EXPIRED, expiration_date=NOW - timedelta(days=31)
        )
        job = _make_job(session_factory, tx_runner, storage=None)

        assert await job.delete_expired() == 1

        async with session_factory() as session:
            assert await session.get(License, lic.id) is None


class TestRun:
    @pytest.mark.asyncio
    async def test_failing_pass_does_not_skip_the_others(self, session_factory, tx_runner):
        lic = await _seed_license(
            session_factory, status=LicenseStatus.VERIFIED, expiration_date=NOW - timedelta(days=2)
        )
        job = _make_job(session_factory, tx_runner)
        job.warn_expiring = AsyncMock(side_effect=RuntimeError("warn broke"))

        with pytest.raises(RuntimeError, match="warn broke"):
            await job.run()

        async with session_factory() as session:
            assert (await session.get(License, lic.id)).status == LicenseStatus.EXPIRED
