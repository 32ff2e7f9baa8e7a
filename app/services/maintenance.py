"""Background maintenance for the relay engines.

Two periodic jobs run on the event loop for the lifetime of the process:

- sweep: drops expired queue entries and idle rate-limit keys. This is the
  only thing that reclaims memory for controllers nobody polls anymore.
- health report: logs queue and rate-limiter statistics. The HTTP health
  endpoint does not expose them.

Both jobs call into the engines, which take their own locks, so they are
serialized with request handling.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Callable

from app.adapters.message_queue.base import AbstractMessageQueue
from app.adapters.rate_limit.base import AbstractRateLimiter
from app.core.auth import is_auth_configured
from app.core.config import settings

logger = logging.getLogger(__name__)


class MaintenanceScheduler:
    """Runs the sweep and health report on fixed intervals."""

    def __init__(
        self,
        queue: AbstractMessageQueue,
        limiter: AbstractRateLimiter,
        *,
        sweep_interval_seconds: float = 60.0,
        health_interval_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if sweep_interval_seconds <= 0 or health_interval_seconds <= 0:
            raise ValueError("intervals must be > 0")

        self._queue = queue
        self._limiter = limiter
        self._sweep_interval = sweep_interval_seconds
        self._health_interval = health_interval_seconds
        self._clock = clock
        self._started_at = clock()
        self._running = False
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return self._running

    def run_sweep(self) -> dict[str, int]:
        """Sweep both engines once.

        Returns:
            Counts of expired messages and idle rate-limit keys removed.
        """
        result = {
            "expired_messages": self._queue.sweep_expired(),
            "idle_rate_limit_keys": self._limiter.sweep(),
        }
        logger.info("maintenance.sweep", extra=result)
        return result

    def health_snapshot(self) -> dict[str, Any]:
        return {
            "status": "healthy",
            "uptime_s": round(self._clock() - self._started_at, 1),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "queues": asdict(self._queue.stats()),
            "rate_limiter": asdict(self._limiter.stats()),
            "auth": {
                "required": settings.app.api_key_required,
                "configured": is_auth_configured(),
            },
        }

    def report_health(self) -> dict[str, Any]:
        snapshot = self.health_snapshot()
        logger.info("health.report", extra={"health": snapshot})
        return snapshot

    async def start(self) -> None:
        """Start both periodic jobs on the running event loop."""
        if self._running:
            return

        self._running = True
        self._tasks = [
            asyncio.create_task(self._run_periodically("sweep", self.run_sweep, self._sweep_interval)),
            asyncio.create_task(
                self._run_periodically("health_report", self.report_health, self._health_interval)
            ),
        ]
        logger.info(
            "maintenance.started",
            extra={
                "sweep_interval_s": self._sweep_interval,
                "health_interval_s": self._health_interval,
            },
        )

    async def stop(self) -> None:
        """Cancel the periodic jobs and wait for them to finish."""
        self._running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []
        logger.info("maintenance.stopped")

    async def _run_periodically(self, name: str, job: Callable[[], Any], interval: float) -> None:
        while self._running:
            await asyncio.sleep(interval)
            try:
                job()
            except Exception:
                # One failed iteration must not stop future sweeps
                logger.exception("maintenance.job_failed", extra={"job": name})
