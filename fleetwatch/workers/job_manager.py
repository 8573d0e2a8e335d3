from __future__ import annotations

import logging
from typing import Any

from fleetwatch.workers.base_job import PeriodicJob

log = logging.getLogger("fleetwatch.jobs")


class JobManager:
    """Registry of background jobs with collective start/stop."""

    def __init__(self) -> None:
        self._jobs: dict[str, PeriodicJob] = {}

    def register(self, job: PeriodicJob) -> None:
        if job.name in self._jobs:
            log.warning("Job %s is already registered, replacing", job.name)
        self._jobs[job.name] = job
        log.info("Registered job %s", job.name)

    def get(self, name: str) -> PeriodicJob | None:
        return self._jobs.get(name)

    def start_all(self) -> None:
        log.info("Starting %d background job(s)", len(self._jobs))
        for name, job in self._jobs.items():
            try:
                job.start()
            except Exception:
                log.exception("Failed to start job %s", name)

    async def stop_all(self) -> None:
        for name, job in self._jobs.items():
            try:
                await job.stop()
            except Exception:
                log.exception("Failed to stop job %s", name)
        log.info("All background jobs stopped")

    def status(self) -> list[dict[str, Any]]:
        return [job.status() for job in self._jobs.values()]
