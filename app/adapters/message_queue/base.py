"""Message queue interfaces and value types.

Two directions are buffered with different replacement policies:

- mobile -> controller: FIFO per controller, each command delivered once.
- controller -> mobile: single latest status per controller, delete-on-read.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal

SenderKind = Literal["mobile", "controller"]


@dataclass(frozen=True)
class Sender:
    """Who produced a queued message.

    Attributes:
        kind: Which side of the relay sent it.
        ip: Source address as seen by the HTTP layer.
        auth_id: Authenticated account identity, when the sender had one.
    """

    kind: SenderKind
    ip: str
    auth_id: str | None = None


@dataclass(frozen=True)
class QueueEntry:
    """A relayed message. Never mutated once created, only deleted.

    Attributes:
        controller_id: Controller key the entry is queued under.
        payload: Opaque blob, never interpreted by the queue.
        sender: Sender descriptor.
        created_at: Monotonic seconds when the entry was accepted.
        expires_at: Monotonic seconds from which the entry is absent.
        accepted_at: UNIX time of acceptance, used only for display.
    """

    controller_id: str
    payload: bytes
    sender: Sender
    created_at: float
    expires_at: float
    accepted_at: float

    @property
    def timestamp(self) -> str:
        """ISO-8601 UTC creation time."""
        return datetime.fromtimestamp(self.accepted_at, tz=timezone.utc).isoformat()

    @property
    def expiry_timestamp(self) -> str:
        """ISO-8601 UTC time from which the entry is no longer delivered."""
        lifetime = self.expires_at - self.created_at
        return datetime.fromtimestamp(self.accepted_at + lifetime, tz=timezone.utc).isoformat()

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class QueueStats:
    """Aggregate counts for monitoring."""

    controllers_with_mobile_backlog: int
    total_mobile_messages_queued: int
    controllers_with_pending_status: int


class AbstractMessageQueue(ABC):
    """Interface for the relay's message buffers."""

    @abstractmethod
    def enqueue_mobile_message(self, key: str, payload: bytes, sender: Sender) -> QueueEntry:
        """Append a mobile message to the controller's FIFO.

        Raises:
            QueueFullError: If a per-controller cap is configured and reached.
        """
        raise NotImplementedError

    @abstractmethod
    def dequeue_mobile_message(self, key: str) -> QueueEntry | None:
        """Remove and return the oldest live mobile message for a controller."""
        raise NotImplementedError

    @abstractmethod
    def upsert_controller_message(self, key: str, payload: bytes, sender: Sender) -> QueueEntry:
        """Replace the controller's latest status."""
        raise NotImplementedError

    @abstractmethod
    def take_controller_message(self, key: str) -> QueueEntry | None:
        """Remove and return the controller's latest status if still live."""
        raise NotImplementedError

    @abstractmethod
    def stats(self) -> QueueStats:
        raise NotImplementedError

    @abstractmethod
    def sweep_expired(self) -> int:
        """Drop every expired entry; return how many were removed."""
        raise NotImplementedError
