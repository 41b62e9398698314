"""Delete in-app notifications past their retention window."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from src.database.transaction import TransactionRunner
from src.modules.notifications.repository import NotificationRepository

logger = logging.getLogger(__name__)

NOTIFICATION_RETENTION_DAYS = 30


class NotificationCleanupJob:
    def __init__(
        self,
        *,
        tx_runner: TransactionRunner,
        notification_repository: NotificationRepository,
        retention_days: int = NOTIFICATION_RETENTION_DAYS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if tx_runner is None:
            raise ValueError("transaction runner required")
        if notification_repository is None:
            raise ValueError("notification repository required")
        self.tx_runner = tx_runner
        self.notifications = notification_repository
        self.retention_days = retention_days if retention_days > 0 else NOTIFICATION_RETENTION_DAYS
        self._clock = clock or (lambda: datetime.now(UTC))

    def name(self) -> str:
        return "notification-cleanup"

    async def run(self) -> None:
        cutoff = self._clock().astimezone(UTC) - timedelta(days=self.retention_days)
        deleted = await self.tx_runner.with_tx(
            lambda tx: self.notifications.delete_older_than(tx, cutoff)
        )
        logger.info(
            "notification cleanup complete rows_deleted=%d retention_days=%d",
            deleted, self.retention_days,
        )
