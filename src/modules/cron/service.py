"""CronService — runs every registered job once per cycle under the distributed lock."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import timedelta

from src.modules.cron.lock import RedisLock
from src.modules.cron.metrics import CronJobMetrics
from src.modules.cron.registry import Job, JobRegistry

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = timedelta(hours=24)


class CronService:
    """Sequential scheduler.

    A cycle runs jobs in registration order; one failing job is logged and
    counted and the next job still runs. Replicas that lose the lock race skip
    the cycle entirely.
    """

    def __init__(
        self,
        lock: RedisLock,
        registry: JobRegistry | None = None,
        metrics: CronJobMetrics | None = None,
        interval: timedelta = DEFAULT_INTERVAL,
    ) -> None:
        if lock is None:
            raise ValueError("lock required")
        self.lock = lock
        self.registry = registry if registry is not None else JobRegistry()
        self.metrics = metrics or CronJobMetrics(None)
        self.interval = interval if interval and interval > timedelta(0) else DEFAULT_INTERVAL
        self._monotonic = time.monotonic
        self._sleep = asyncio.sleep

    async def run(self) -> None:
        """Run a cycle now, then on a fixed cadence until cancelled.

        Ticks are spaced one interval apart from cycle starts, so a slow cycle
        does not push later ones back. A cycle that overruns its interval is
        followed immediately by the next one.
        """
        period = self.interval.total_seconds()
        next_tick = self._monotonic()
        try:
            while True:
                next_tick += period
                try:
                    await self.run_cycle()
                except Exception:
                    logger.exception("scheduled run failed")
                now = self._monotonic()
                if next_tick <= now:
                    next_tick = now
                await self._sleep(next_tick - now)
        except asyncio.CancelledError:
            logger.info("cron service cancelled")
            raise

    async def run_cycle(self) -> bool:
        """One locked pass over the registry. Returns False when another instance holds the lock."""
        if not await self.lock.acquire():
            logger.info("another cron instance is running; skipping this cycle")
            return False
        try:
            logger.info("scheduled run starting jobs=%d", len(self.registry))
            for job in self.registry.jobs():
                await self._run_job(job)
            logger.info("scheduled run complete")
        finally:
            try:
                await self.lock.release()
            except Exception:
                logger.exception("failed to release cron lock")
        return True

    async def _run_job(self, job: Job) -> None:
        name = job.name()
        logger.info("job start job=%s", name)
        started = time.monotonic()
        try:
            await job.run()
        except Exception:
            duration = time.monotonic() - started
            self.metrics.observe_duration(name, duration)
            self.metrics.inc_failure(name)
            logger.exception("job failed job=%s duration_ms=%d", name, int(duration * 1000))
            return
        duration = time.monotonic() - started
        self.metrics.observe_duration(name, duration)
        self.metrics.inc_success(name)
        logger.info("job completed job=%s duration_ms=%d", name, int(duration * 1000))
