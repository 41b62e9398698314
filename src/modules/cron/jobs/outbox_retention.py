"""Purge published outbox rows that are old enough and were retried enough."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from src.database.transaction import TransactionRunner
from src.modules.events.outbox_repository import OutboxRepository

logger = logging.getLogger(__name__)

OUTBOX_RETENTION_DAYS = 30
OUTBOX_MIN_ATTEMPTS = 5


class OutboxRetentionJob:
    """Only rows with ``published_at`` set are ever deleted.

    ``min_attempts`` additionally keeps published rows that needed fewer
    delivery attempts than the threshold.
    """

    def __init__(
        self,
        *,
        tx_runner: TransactionRunner,
        outbox_repository: OutboxRepository,
        retention_days: int = OUTBOX_RETENTION_DAYS,
        min_attempts: int = OUTBOX_MIN_ATTEMPTS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if tx_runner is None:
            raise ValueError("transaction runner required")
        if outbox_repository is None:
            raise ValueError("outbox repository required")
        self.tx_runner = tx_runner
        self.outbox_repository = outbox_repository
        self.retention_days = retention_days if retention_days > 0 else OUTBOX_RETENTION_DAYS
        self.min_attempts = min_attempts if min_attempts > 0 else OUTBOX_MIN_ATTEMPTS
        self._clock = clock or (lambda: datetime.now(UTC))

    def name(self) -> str:
        return "outbox-retention"

    async def run(self) -> None:
        cutoff = self._clock().astimezone(UTC) - timedelta(days=self.retention_days)
        deleted = await self.tx_runner.with_tx(
            lambda tx: self.outbox_repository.delete_published_before(tx, cutoff, self.min_attempts)
        )
        logger.info(
            "outbox retention complete rows_deleted=%d retention_days=%d min_attempts=%d",
            deleted, self.retention_days, self.min_attempts,
        )
