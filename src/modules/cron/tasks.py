"""Celery tasks for the maintenance scheduler."""

from __future__ import annotations

import asyncio
import logging

import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from celery_app import celery
from src.config import settings
from src.modules.cron.bootstrap import build_cron_service

logger = logging.getLogger(__name__)


async def _run_cron_cycle_async() -> dict:
    """One locked pass over every job.

    Each Celery invocation runs in a fresh event loop, so the engine is built
    per call without pooling.
    """
    engine = create_async_engine(settings.database_url, poolclass=NullPool)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    redis_client = redis.from_url(settings.redis_url)
    try:
        service = build_cron_service(settings, session_factory, redis_client)
        ran = await service.run_cycle()
        return {"ran": ran, "jobs": len(service.registry)}
    finally:
        await redis_client.aclose()
        await engine.dispose()


@celery.task(name="src.modules.cron.tasks.run_cron_cycle")
def run_cron_cycle():
    """Run the maintenance jobs once if no other instance holds the cron lock."""
    stats = asyncio.run(_run_cron_cycle_async())
    logger.info("run_cron_cycle complete: %s", stats)
    return stats
