"""Tests for the background sweep and health report."""

import asyncio
import logging
from unittest.mock import MagicMock

import pytest

from app.adapters.message_queue.base import Sender
from app.adapters.message_queue.in_memory import InMemoryMessageQueue
from app.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from app.services.maintenance import MaintenanceScheduler

SENDER = Sender(kind="mobile", ip="10.0.0.1")


@pytest.fixture
def queue(clock) -> InMemoryMessageQueue:
    return InMemoryMessageQueue(ttl_seconds=660, clock=clock)


@pytest.fixture
def limiter(clock) -> InMemorySlidingWindowRateLimiter:
    return InMemorySlidingWindowRateLimiter(limit=25, window_seconds=30, clock=clock)


def test_run_sweep_cleans_both_engines(queue, limiter, clock) -> None:
    queue.enqueue_mobile_message("7", b"M1", SENDER)
    queue.upsert_controller_message("9", b"H1", Sender(kind="controller", ip="10.0.0.9"))
    limiter.record_request("ip:10.0.0.1")
    clock.advance(661)

    scheduler = MaintenanceScheduler(queue, limiter)
    result = scheduler.run_sweep()

    assert result == {"expired_messages": 2, "idle_rate_limit_keys": 1}
    assert queue.stats().controllers_with_mobile_backlog == 0
    assert limiter.stats().tracked_keys == 0


def test_health_snapshot_contents(queue, limiter, clock) -> None:
    scheduler = MaintenanceScheduler(queue, limiter, clock=clock)
    queue.enqueue_mobile_message("7", b"M1", SENDER)
    limiter.record_request("acct:1")
    clock.advance(12.34)

    snapshot = scheduler.health_snapshot()

    assert snapshot["status"] == "healthy"
    assert snapshot["uptime_s"] == 12.3
    assert snapshot["queues"] == {
        "controllers_with_mobile_backlog": 1,
        "total_mobile_messages_queued": 1,
        "controllers_with_pending_status": 0,
    }
    assert snapshot["rate_limiter"] == {"tracked_keys": 1}
    assert snapshot["auth"]["configured"] is True


def test_report_health_logs_snapshot(queue, limiter, caplog: pytest.LogCaptureFixture) -> None:
    scheduler = MaintenanceScheduler(queue, limiter)

    with caplog.at_level(logging.INFO, logger="app.services.maintenance"):
        scheduler.report_health()

    record = next(r for r in caplog.records if r.getMessage() == "health.report")
    assert record.health["queues"]["total_mobile_messages_queued"] == 0


def test_invalid_intervals(queue, limiter) -> None:
    with pytest.raises(ValueError):
        MaintenanceScheduler(queue, limiter, sweep_interval_seconds=0)


@pytest.mark.asyncio
async def test_background_sweep_runs_until_stopped(queue, limiter, clock) -> None:
    queue.enqueue_mobile_message("7", b"M1", SENDER)
    clock.advance(661)
    scheduler = MaintenanceScheduler(
        queue, limiter, sweep_interval_seconds=0.01, health_interval_seconds=0.01
    )

    await scheduler.start()
    assert scheduler.running is True
    await asyncio.sleep(0.05)
    await scheduler.stop()

    assert scheduler.running is False
    assert queue.stats().controllers_with_mobile_backlog == 0


@pytest.mark.asyncio
async def test_failed_iteration_does_not_stop_loop(queue) -> None:
    calls: list[int] = []

    def _sweep() -> int:
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")
        return 0

    limiter = MagicMock()
    limiter.sweep.side_effect = _sweep
    scheduler = MaintenanceScheduler(
        queue, limiter, sweep_interval_seconds=0.01, health_interval_seconds=60
    )

    await scheduler.start()
    await asyncio.sleep(0.05)
    await scheduler.stop()

    assert len(calls) >= 2


@pytest.mark.asyncio
async def test_start_is_idempotent(queue, limiter) -> None:
    scheduler = MaintenanceScheduler(queue, limiter)

    await scheduler.start()
    await scheduler.start()
    await scheduler.stop()

    assert scheduler.running is False
