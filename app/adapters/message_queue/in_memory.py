"""In-memory message queue with fixed TTL expiry.

Notes:
- Per-process only: entries are lost on restart and not shared across workers.
- Thread-safe: one lock guards both maps, including the periodic sweep.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Callable

from app.adapters.message_queue.base import (
    AbstractMessageQueue,
    QueueEntry,
    QueueStats,
    Sender,
)
from app.core.errors import QueueFullError

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 11 * 60


class InMemoryMessageQueue(AbstractMessageQueue):
    """FIFO mobile->controller queue plus latest-wins controller->mobile slot.

    Every entry expires ``ttl_seconds`` after it was accepted. Because the TTL
    is constant and entries are appended in time order, only a prefix of a
    FIFO can be stale; reads drop that prefix, the sweep catches the rest.

    Important:
        With ``max_entries_per_key=None`` a controller's FIFO is unbounded, so
        the rate limiter is the only protection against flooding.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries_per_key: int | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the queue.

        Args:
            ttl_seconds: Lifetime of every entry in seconds.
            max_entries_per_key: Optional cap on pending mobile messages per
                controller.
            clock: Time source for expiry. Must never run backwards.
            wall_clock: UNIX time source for the timestamps shown to clients.

        Raises:
            ValueError: If ttl_seconds or max_entries_per_key are invalid.
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        if max_entries_per_key is not None and max_entries_per_key < 1:
            raise ValueError("max_entries_per_key must be >= 1")

        self._ttl = ttl_seconds
        self._max_entries_per_key = max_entries_per_key
        self._clock = clock
        self._wall_clock = wall_clock
        self._lock = threading.RLock()
        self._mobile_queues: dict[str, deque[QueueEntry]] = {}
        self._controller_slots: dict[str, QueueEntry] = {}

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryMessageQueue(ttl_seconds={self._ttl}, "
            f"max_entries_per_key={self._max_entries_per_key})"
        )

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def _new_entry(self, key: str, payload: bytes, sender: Sender, now: float) -> QueueEntry:
        return QueueEntry(
            controller_id=key,
            payload=payload,
            sender=sender,
            created_at=now,
            expires_at=now + self._ttl,
            accepted_at=self._wall_clock(),
        )

    def _drop_expired_prefix_locked(self, queue: deque[QueueEntry], now: float) -> int:
        removed = 0
        while queue and queue[0].is_expired(now):
            queue.popleft()
            removed += 1
        return removed

    def enqueue_mobile_message(self, key: str, payload: bytes, sender: Sender) -> QueueEntry:
        """Append a message for a controller, stamping its expiry.

        Args:
            key: Controller key.
            payload: Opaque message body.
            sender: Sender descriptor.

        Returns:
            The stored entry.

        Raises:
            QueueFullError: If ``max_entries_per_key`` is set and the
                controller already has that many live messages pending.
        """
        with self._lock:
            now = self._clock()
            queue = self._mobile_queues.get(key)
            if queue is None:
                queue = deque()
                self._mobile_queues[key] = queue
            else:
                self._drop_expired_prefix_locked(queue, now)

            if self._max_entries_per_key is not None and len(queue) >= self._max_entries_per_key:
                logger.warning(
                    "queue.mobile_rejected",
                    extra={
                        "controller_id": key,
                        "queue_size": len(queue),
                        "max_entries": self._max_entries_per_key,
                    },
                )
                raise QueueFullError(
                    code="queue_full",
                    message="Too many pending messages for this controller",
                    details={
                        "controller_id": key,
                        "max_entries": self._max_entries_per_key,
                    },
                )

            entry = self._new_entry(key, payload, sender, now)
            queue.append(entry)
            logger.info(
                "queue.mobile_enqueued",
                extra={
                    "controller_id": key,
                    "queue_size": len(queue),
                    "payload_bytes": len(payload),
                },
            )
            return entry

    def dequeue_mobile_message(self, key: str) -> QueueEntry | None:
        """Remove and return the oldest live message for a controller.

        Returns ``None`` both when nothing was ever queued for ``key`` and when
        everything queued has expired.
        """
        with self._lock:
            queue = self._mobile_queues.get(key)
            if queue is None:
                return None

            removed = self._drop_expired_prefix_locked(queue, self._clock())
            if removed:
                logger.info(
                    "queue.mobile_expired",
                    extra={"controller_id": key, "removed": removed},
                )

            entry = queue.popleft() if queue else None
            if not queue:
                del self._mobile_queues[key]

            if entry is not None:
                logger.info(
                    "queue.mobile_dequeued",
                    extra={"controller_id": key, "queue_size": len(queue)},
                )
            return entry

    def upsert_controller_message(self, key: str, payload: bytes, sender: Sender) -> QueueEntry:
        """Store a controller status, replacing whatever was there."""
        with self._lock:
            entry = self._new_entry(key, payload, sender, self._clock())
            replaced = key in self._controller_slots
            self._controller_slots[key] = entry
            logger.info(
                "queue.controller_upserted",
                extra={"controller_id": key, "replaced": replaced},
            )
            return entry

    def take_controller_message(self, key: str) -> QueueEntry | None:
        """Remove and return the latest status for a controller.

        Delete-on-read: a second call returns ``None`` until a new status is
        upserted. An expired status is discarded and ``None`` is returned.
        """
        with self._lock:
            entry = self._controller_slots.pop(key, None)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                logger.info("queue.controller_expired", extra={"controller_id": key})
                return None
            logger.info("queue.controller_taken", extra={"controller_id": key})
            return entry

    def stats(self) -> QueueStats:
        with self._lock:
            return QueueStats(
                controllers_with_mobile_backlog=len(self._mobile_queues),
                total_mobile_messages_queued=sum(len(q) for q in self._mobile_queues.values()),
                controllers_with_pending_status=len(self._controller_slots),
            )

    def sweep_expired(self) -> int:
        """Remove expired entries anywhere in either map.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            now = self._clock()
            removed = 0

            for key in list(self._mobile_queues):
                queue = self._mobile_queues[key]
                live = deque(entry for entry in queue if not entry.is_expired(now))
                removed += len(queue) - len(live)
                if not live:
                    del self._mobile_queues[key]
                elif len(live) != len(queue):
                    self._mobile_queues[key] = live

            expired_slots = [k for k, entry in self._controller_slots.items() if entry.is_expired(now)]
            for key in expired_slots:
                del self._controller_slots[key]
            removed += len(expired_slots)

        if removed:
            logger.info("queue.sweep", extra={"removed": removed})
        return removed
