"""Long-running cron worker: ``python -m src.modules.cron.worker``."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys

import redis.asyncio as redis
from prometheus_client import CollectorRegistry, start_http_server

from src.config import settings
from src.database.engine import async_session, engine
from src.modules.cron.bootstrap import build_cron_service

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


async def _serve() -> None:
    metrics_registry = CollectorRegistry()
    redis_client = redis.from_url(settings.redis_url)
    try:
        await redis_client.ping()
        service = build_cron_service(settings, async_session, redis_client, metrics_registry)
        if settings.cron_metrics_port > 0:
            start_http_server(settings.cron_metrics_port, registry=metrics_registry)
            logger.info("cron metrics exporter listening port=%d", settings.cron_metrics_port)

        task = asyncio.create_task(service.run())
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, task.cancel)

        logger.info(
            "cron worker started interval_seconds=%d jobs=%d lock_key=%s",
            settings.cron_interval_seconds, len(service.registry), settings.resolved_cron_lock_key,
        )
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("cron worker stopped")
    finally:
        await redis_client.aclose()
        await engine.dispose()


def main() -> int:
    _configure_logging()
    try:
        asyncio.run(_serve())
    except Exception:
        logger.exception("cron worker failed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
