"""Process-wide message queue instance.

Routes and the maintenance scheduler share one queue per process, created on
first use from ``settings.queue``.
"""

from __future__ import annotations

from app.adapters.message_queue.base import AbstractMessageQueue
from app.adapters.message_queue.in_memory import InMemoryMessageQueue
from app.core.config import settings

_queue: AbstractMessageQueue | None = None
_queue_config: tuple[int, int | None] | None = None


def get_message_queue() -> AbstractMessageQueue:
    """Return the shared queue, rebuilding it if its configuration changed."""

    global _queue, _queue_config

    config = (
        settings.queue.ttl_seconds,
        settings.queue.max_entries_per_controller,
    )

    if _queue is None or _queue_config != config:
        _queue = InMemoryMessageQueue(
            ttl_seconds=settings.queue.ttl_seconds,
            max_entries_per_key=settings.queue.max_entries_per_controller,
        )
        _queue_config = config

    return _queue
