"""Celery application configuration for marketplace background tasks."""

from celery import Celery

from src.config import settings

celery = Celery("marketplace")

celery.conf.update(
    broker_url=settings.celery_broker_url,
    result_backend=settings.celery_result_backend,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # --- Queue routing per job type ---
    task_routes={
        "src.modules.cron.tasks.run_cron_cycle": {"queue": "cron"},
    },
    # --- Reliability settings ---
    task_default_retry_delay=60,
    task_max_retries=3,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    result_expires=86400,  # 24 hours
    # --- Broker transport options (Redis reliability) ---
    broker_transport_options={
        "max_retries": 10,
        "interval_start": 0.2,
        "interval_step": 0.5,
        "interval_max": 5.0,
        "retry_on_timeout": True,
        # A cycle can run for hours; keep the message invisible until the lock TTL lapses
        "visibility_timeout": settings.cron_lock_ttl_seconds,
    },
    # --- Beat schedule ---
    beat_schedule={
        "run-cron-cycle": {
            "task": "src.modules.cron.tasks.run_cron_cycle",
            "schedule": settings.cron_interval_seconds,
        },
    },
)

celery.autodiscover_tasks([
    "src.modules.cron",
])
