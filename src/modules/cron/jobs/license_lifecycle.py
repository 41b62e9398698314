"""License lifecycle: warn before expiry, expire, then purge long-expired licenses."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from src.database.transaction import TransactionRunner
from src.exceptions import DependencyException, combine_errors, wrap
from src.models.enums import LicenseStatus, OutboxAggregateType, OutboxEventType
from src.models.license import License
from src.modules.events.outbox_repository import OutboxRepository
from src.modules.events.outbox_service import DomainEvent, OutboxService
from src.modules.events.payloads import LicenseExpiredEvent, LicenseExpiringSoonEvent
from src.modules.licenses.kyc import determine_store_kyc_status
from src.modules.licenses.repository import LicenseRepository
from src.modules.media.repository import AttachmentRepository, MediaRepository
from src.modules.media.storage import S3ObjectStorageClient
from src.modules.stores.repository import StoreRepository

logger = logging.getLogger(__name__)

EXPIRY_WARNING_DAYS = 14
EXPIRATION_WINDOW_DAYS = 30
DELETION_AGE_DAYS = 30


def _positive(value: int | None, default: int) -> int:
    return value if value and value > 0 else default


class LicenseLifecycleJob:
    """Three independent passes; a failure in one license or pass does not stop the others."""

    def __init__(
        self,
        *,
        tx_runner: TransactionRunner,
        license_repository: LicenseRepository,
        store_repository: StoreRepository,
        media_repository: MediaRepository,
        attachment_repository: AttachmentRepository,
        outbox: OutboxService,
        outbox_repository: OutboxRepository,
        storage: S3ObjectStorageClient | None = None,
        bucket: str = "",
        warning_days: int = EXPIRY_WARNING_DAYS,
        expiration_window_days: int = EXPIRATION_WINDOW_DAYS,
        deletion_age_days: int = DELETION_AGE_DAYS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        required = {
            "transaction runner": tx_runner,
            "license repository": license_repository,
            "store repository": store_repository,
            "media repository": media_repository,
            "attachment repository": attachment_repository,
            "outbox service": outbox,
            "outbox repository": outbox_repository,
        }
        for label, value in required.items():
            if value is None:
                raise ValueError(f"{label} required")
        self.tx_runner = tx_runner
        self.licenses = license_repository
        self.stores = store_repository
        self.media = media_repository
        self.attachments = attachment_repository
        self.outbox = outbox
        self.outbox_repository = outbox_repository
        self.storage = storage
        self.bucket = bucket
        self.warning_days = _positive(warning_days, EXPIRY_WARNING_DAYS)
        self.expiration_window_days = _positive(expiration_window_days, EXPIRATION_WINDOW_DAYS)
        self.deletion_age_days = _positive(deletion_age_days, DELETION_AGE_DAYS)
        self._clock = clock or (lambda: datetime.now(UTC))

    def name(self) -> str:
        return "license-lifecycle"

    def _now(self) -> datetime:
        return self._clock().astimezone(UTC)

    async def run(self) -> None:
        errors = []
        for step in (self.warn_expiring, self.expire_licenses, self.delete_expired):
            try:
                await step()
            except Exception as exc:
                errors.append(exc)
        error = combine_errors(errors)
        if error is not None:
            raise error

    # ------------------------------------------------------------------
    # Warn
    # ------------------------------------------------------------------

    async def warn_expiring(self) -> int:
        """Queue one expiring-soon event per verified license expiring on day ``now + warning_days``."""
        target = self._now() + timedelta(days=self.warning_days)
        start = datetime(target.year, target.month, target.day, tzinfo=UTC)
        end = start + timedelta(days=1)
        try:
            candidates = await self.licenses.find_expiring_between(start, end)
        except Exception as exc:
            raise wrap(DependencyException, exc, "query expiring licenses") from exc

        errors = []
        count = 0
        for lic in candidates:
            if lic.status != LicenseStatus.VERIFIED or lic.expiration_date is None:
                continue
            try:
                if await self._queue_warning(lic):
                    count += 1
            except Exception as exc:
                errors.append(wrap(DependencyException, exc, f"queue warning event license={lic.id}"))
        logger.info("license warn loop complete count=%d", count)
        self._raise_collected(errors)
        return count

    async def _queue_warning(self, lic: License) -> bool:
        exists = await self.outbox_repository.exists(
            OutboxEventType.LICENSE_EXPIRING_SOON, OutboxAggregateType.LICENSE, lic.id
        )
        if exists:
            return False
        now = self._now()

        async def _emit(tx: AsyncSession) -> None:
            await self.outbox.emit(
                tx,
                DomainEvent(
                    event_type=OutboxEventType.LICENSE_EXPIRING_SOON,
                    aggregate_type=OutboxAggregateType.LICENSE,
                    aggregate_id=lic.id,
                    data=LicenseExpiringSoonEvent(
                        license_id=lic.id,
                        store_id=lic.store_id,
                        expiration_date=lic.expiration_date,
                        days_until_expiration=self.warning_days,
                    ),
                    occurred_at=now,
                ),
            )

        await self.tx_runner.with_tx(_emit)
        return True

    # ------------------------------------------------------------------
    # Expire
    # ------------------------------------------------------------------

    async def expire_licenses(self) -> int:
        now = self._now()
        try:
            candidates = await self.licenses.find_expired_in_range(
                now - timedelta(days=self.expiration_window_days), now
            )
        except Exception as exc:
            raise wrap(DependencyException, exc, "query licenses for expiry") from exc

        errors = []
        count = 0
        for lic in candidates:
            if lic.status != LicenseStatus.VERIFIED or lic.expiration_date is None:
                continue
            try:
                await self._expire_license(lic)
            except Exception as exc:
                errors.append(wrap(DependencyException, exc, f"expire license={lic.id}"))
                continue
            count += 1
        logger.info("license expiry loop complete count=%d", count)
        self._raise_collected(errors)
        return count

    async def _expire_license(self, lic: License) -> None:
        now = self._now()

        async def _apply(tx: AsyncSession) -> None:
            await self.licenses.update_status(tx, lic.id, LicenseStatus.EXPIRED)
            await self._recompute_kyc(tx, lic)
            await self.outbox.emit(
                tx,
                DomainEvent(
                    event_type=OutboxEventType.LICENSE_EXPIRED,
                    aggregate_type=OutboxAggregateType.LICENSE,
                    aggregate_id=lic.id,
                    data=LicenseExpiredEvent(
                        license_id=lic.id,
                        store_id=lic.store_id,
                        expiration_date=lic.expiration_date,
                        expired_at=now,
                    ),
                    occurred_at=now,
                ),
            )

        await self.tx_runner.with_tx(_apply)

    # ------------------------------------------------------------------
    # Hard delete
    # ------------------------------------------------------------------

    async def delete_expired(self) -> int:
        cutoff = self._now() - timedelta(days=self.deletion_age_days)
        try:
            candidates = await self.licenses.find_expired_before(cutoff)
        except Exception as exc:
            raise wrap(DependencyException, exc, "query stale licenses") from exc

        errors = []
        count = 0
        for lic in candidates:
            try:
                await self._delete_license(lic)
            except Exception as exc:
                errors.append(wrap(DependencyException, exc, f"delete license={lic.id}"))
                continue
            count += 1
        logger.info("license hard-delete loop complete count=%d", count)
        self._raise_collected(errors)
        return count

    async def _delete_license(self, lic: License) -> None:
        attachments = await self.attachments.list_by_media_id(lic.media_id)
        storage_key = lic.storage_key

        async def _apply(tx: AsyncSession) -> None:
            for attachment in attachments:
                await self.attachments.delete(
                    tx, attachment.entity_type, attachment.entity_id, attachment.media_id
                )
            # Storage delete precedes the row deletes; a failure rolls them back.
            if self.storage is not None and storage_key:
                await self.storage.delete_object(self.bucket, storage_key)
            await self.licenses.delete(tx, lic.id)
            await self.media.delete(tx, lic.media_id)
            await self._recompute_kyc(tx, lic)

        await self.tx_runner.with_tx(_apply)
        logger.info("license purged license_id=%s store_id=%s", lic.id, lic.store_id)

    async def _recompute_kyc(self, tx: AsyncSession, lic: License) -> None:
        statuses = await self.licenses.list_statuses(tx, lic.store_id)
        await self.stores.update_status(tx, lic.store_id, determine_store_kyc_status(statuses))

    @staticmethod
    def _raise_collected(errors: list[Exception]) -> None:
        error = combine_errors(errors)
        if error is not None:
            raise error
