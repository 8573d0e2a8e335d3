"""Periodic background jobs with skip-if-busy semantics."""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from fleetwatch.core.clock import utcnow

log = logging.getLogger("fleetwatch.jobs")


class PeriodicJob(ABC):
    """Runs ``execute`` every ``interval_seconds``.

    Every tick launches its own run. A tick that fires while the previous run
    is still executing is skipped, not queued.
    """

    def __init__(self, name: str, interval_seconds: float, enabled: bool = True) -> None:
        self.name = name
        self.interval_seconds = interval_seconds
        self.enabled = enabled
        self.is_running = False
        self.last_run: datetime | None = None
        self.run_count = 0
        self.error_count = 0
        self.skip_count = 0
        self._ticker: asyncio.Task | None = None
        self._runs: set[asyncio.Task] = set()

    @abstractmethod
    async def execute(self) -> None:
        """Job body."""

    @property
    def is_active(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    def start(self) -> None:
        if self.is_active:
            log.warning("Job %s is already running", self.name)
            return
        if not self.enabled:
            log.info("Job %s is disabled, skipping start", self.name)
            return
        log.info("Starting job %s every %ss", self.name, self.interval_seconds)
        self._ticker = asyncio.create_task(self._tick_forever(), name=f"{self.name}-ticker")

    async def stop(self) -> None:
        if self._ticker is None:
            return
        self._ticker.cancel()
        pending = [self._ticker, *self._runs]
        await asyncio.gather(*pending, return_exceptions=True)
        self._ticker = None
        log.info("Job %s stopped", self.name)

    async def _tick_forever(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            task = asyncio.create_task(self.run(), name=f"{self.name}-run")
            self._runs.add(task)
            task.add_done_callback(self._runs.discard)

    async def run(self) -> bool:
        """Execute once. Returns False when skipped because a run is in flight."""
        if self.is_running:
            self.skip_count += 1
            log.warning("Job %s is already running, skipping this execution", self.name)
            return False

        self.is_running = True
        started = time.perf_counter()
        try:
            log.debug("Executing job %s", self.name)
            await self.execute()
            self.last_run = utcnow()
            self.run_count += 1
            log.debug("Job %s completed in %.0fms", self.name, (time.perf_counter() - started) * 1000)
        except Exception:
            self.error_count += 1
            log.exception("Error in job %s", self.name)
        finally:
            self.is_running = False
        return True

    def status(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "interval_seconds": self.interval_seconds,
            "enabled": self.enabled,
            "is_active": self.is_active,
            "is_running": self.is_running,
            "last_run": self.last_run,
            "run_count": self.run_count,
            "error_count": self.error_count,
            "skip_count": self.skip_count,
        }
