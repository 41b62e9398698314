"""Prometheus metrics for cron jobs."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Histogram

# Jobs range from sub-second retention deletes to multi-minute provider syncs
JOB_DURATION_BUCKETS = (0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 300.0, 900.0)


def _label(job: str) -> str:
    return job or "unknown"


class CronJobMetrics:
    """Per-job duration histogram and success/failure counters.

    Built without a registry the instance records nothing, so callers never
    need to branch on whether metrics are enabled.
    """

    def __init__(self, registry: CollectorRegistry | None) -> None:
        self.enabled = registry is not None
        if not self.enabled:
            return
        self.job_duration_seconds = Histogram(
            "job_duration_seconds",
            "Cron job execution time in seconds",
            ["job"],
            buckets=JOB_DURATION_BUCKETS,
            registry=registry,
        )
        self.job_success = Counter(
            "job_success",
            "Cron job successful runs",
            ["job"],
            registry=registry,
        )
        self.job_failure = Counter(
            "job_failure",
            "Cron job failed runs",
            ["job"],
            registry=registry,
        )

    def observe_duration(self, job: str, seconds: float) -> None:
        if self.enabled:
            self.job_duration_seconds.labels(job=_label(job)).observe(seconds)

    def inc_success(self, job: str) -> None:
        if self.enabled:
            self.job_success.labels(job=_label(job)).inc()

    def inc_failure(self, job: str) -> None:
        if self.enabled:
            self.job_failure.labels(job=_label(job)).inc()
