"""Ordered set of named cron jobs."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Job(Protocol):
    def name(self) -> str: ...

    async def run(self) -> None: ...


class JobRegistry:
    def __init__(self, *jobs: Job | None) -> None:
        self._jobs: list[Job] = []
        for job in jobs:
            self.register(job)

    def register(self, job: Job | None) -> None:
        if job is None:
            return
        name = job.name()
        if any(existing.name() == name for existing in self._jobs):
            raise ValueError(f"job {name!r} already registered")
        self._jobs.append(job)

    def jobs(self) -> list[Job]:
        return list(self._jobs)

    def __len__(self) -> int:
        return len(self._jobs)
