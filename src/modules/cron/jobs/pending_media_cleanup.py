"""Remove media rows that never finished uploading."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from src.database.transaction import TransactionRunner
from src.exceptions import DependencyException, wrap
from src.modules.media.repository import AttachmentRepository, MediaRepository

logger = logging.getLogger(__name__)

PENDING_MEDIA_RETENTION_DAYS = 7


class PendingMediaCleanupJob:
    def __init__(
        self,
        *,
        tx_runner: TransactionRunner,
        media_repository: MediaRepository,
        attachment_repository: AttachmentRepository,
        retention_days: int = PENDING_MEDIA_RETENTION_DAYS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if tx_runner is None:
            raise ValueError("transaction runner required")
        if media_repository is None:
            raise ValueError("media repository required")
        if attachment_repository is None:
            raise ValueError("attachment repository required")
        self.tx_runner = tx_runner
        self.media = media_repository
        self.attachments = attachment_repository
        self.retention_days = retention_days if retention_days > 0 else PENDING_MEDIA_RETENTION_DAYS
        self._clock = clock or (lambda: datetime.now(UTC))

    def name(self) -> str:
        return "pending-media-cleanup"

    async def run(self) -> None:
        cutoff = self._clock().astimezone(UTC) - timedelta(days=self.retention_days)
        try:
            candidates = await self.media.list_pending_before(cutoff)
        except Exception as exc:
            raise wrap(DependencyException, exc, "query pending media") from exc

        if not candidates:
            logger.info(
                "pending media cleanup complete media_candidates=0 attachments_deleted=0 media_deleted=0"
            )
            return

        async def _purge(tx: AsyncSession) -> tuple[int, int]:
            attachments_deleted = 0
            media_deleted = 0
            for media in candidates:
                attachments_deleted += await self.attachments.delete_by_media_id(tx, media.id)
                await self.media.delete(tx, media.id)
                media_deleted += 1
            return attachments_deleted, media_deleted

        attachments_deleted, media_deleted = await self.tx_runner.with_tx(_purge)
        logger.info(
            "pending media cleanup complete media_candidates=%d attachments_deleted=%d media_deleted=%d",
            len(candidates), attachments_deleted, media_deleted,
        )
