"""Build the cron service and its jobs from settings."""

from __future__ import annotations

import logging
from datetime import timedelta

import redis.asyncio as redis
from prometheus_client import CollectorRegistry
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import Settings
from src.database.transaction import TransactionRunner
from src.modules.billing.repository import BillingRepository
from src.modules.cron.jobs.license_lifecycle import LicenseLifecycleJob
from src.modules.cron.jobs.notification_cleanup import NotificationCleanupJob
from src.modules.cron.jobs.order_ttl import OrderTTLJob
from src.modules.cron.jobs.outbox_retention import OutboxRetentionJob
from src.modules.cron.jobs.pending_media_cleanup import PendingMediaCleanupJob
from src.modules.cron.jobs.subscription_reconcile import SubscriptionReconcileJob
from src.modules.cron.lock import RedisLock
from src.modules.cron.metrics import CronJobMetrics
from src.modules.cron.registry import JobRegistry
from src.modules.cron.service import CronService
from src.modules.events.outbox_repository import OutboxRepository
from src.modules.events.outbox_service import OutboxService
from src.modules.licenses.repository import LicenseRepository
from src.modules.media.repository import AttachmentRepository, MediaRepository
from src.modules.media.storage import S3ObjectStorageClient
from src.modules.notifications.repository import NotificationRepository
from src.modules.orders.inventory import InventoryReleaser
from src.modules.orders.repository import VendorOrderRepository
from src.modules.stores.repository import StoreRepository
from src.modules.subscriptions.provider import BillingProvider
from src.modules.subscriptions.square_client import SquareSubscriptionClient

logger = logging.getLogger(__name__)


def build_registry(
    config: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    provider: BillingProvider | None = None,
    storage: S3ObjectStorageClient | None = None,
) -> JobRegistry:
    """Register the maintenance jobs in execution order.

    Without a billing provider (no Square access token) the reconcile job is
    left out.
    """
    tx_runner = TransactionRunner(session_factory)
    outbox_repository = OutboxRepository(session_factory)
    outbox = OutboxService(outbox_repository)
    stores = StoreRepository()
    media = MediaRepository(session_factory)
    attachments = AttachmentRepository(session_factory)

    if provider is None and config.square_access_token.strip():
        provider = SquareSubscriptionClient.from_settings(config)
    if storage is None:
        storage = S3ObjectStorageClient.from_settings(config)

    reconcile_job = None
    if provider is not None:
        reconcile_job = SubscriptionReconcileJob(
            tx_runner=tx_runner,
            billing_repository=BillingRepository(session_factory),
            store_repository=stores,
            provider=provider,
            limit=config.subscriptions_reconcile_limit,
            lookback=timedelta(days=config.subscriptions_reconcile_lookback_days),
        )
    else:
        logger.warning("Square access token not configured; subscription-reconcile job disabled")

    return JobRegistry(
        LicenseLifecycleJob(
            tx_runner=tx_runner,
            license_repository=LicenseRepository(session_factory),
            store_repository=stores,
            media_repository=media,
            attachment_repository=attachments,
            outbox=outbox,
            outbox_repository=outbox_repository,
            storage=storage,
            bucket=config.storage_bucket,
            warning_days=config.license_expiry_warning_days,
            expiration_window_days=config.license_expiration_window_days,
            deletion_age_days=config.license_deletion_age_days,
        ),
        OrderTTLJob(
            tx_runner=tx_runner,
            order_repository=VendorOrderRepository(session_factory),
            inventory=InventoryReleaser(),
            outbox=outbox,
            outbox_repository=outbox_repository,
            nudge_days=config.orders_pending_nudge_days,
            expiration_days=config.orders_expiration_days,
        ),
        NotificationCleanupJob(
            tx_runner=tx_runner,
            notification_repository=NotificationRepository(),
            retention_days=config.notifications_retention_days,
        ),
        PendingMediaCleanupJob(
            tx_runner=tx_runner,
            media_repository=media,
            attachment_repository=attachments,
            retention_days=config.media_pending_retention_days,
        ),
        OutboxRetentionJob(
            tx_runner=tx_runner,
            outbox_repository=outbox_repository,
            retention_days=config.outbox_retention_days,
            min_attempts=config.outbox_min_attempts,
        ),
        reconcile_job,
    )


def build_cron_service(
    config: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    redis_client: redis.Redis,
    metrics_registry: CollectorRegistry | None = None,
    registry: JobRegistry | None = None,
) -> CronService:
    lock = RedisLock(
        redis_client,
        config.resolved_cron_lock_key,
        timedelta(seconds=config.cron_lock_ttl_seconds),
    )
    return CronService(
        lock=lock,
        registry=registry if registry is not None else build_registry(config, session_factory),
        metrics=CronJobMetrics(metrics_registry),
        interval=timedelta(seconds=config.cron_interval_seconds),
    )
