"""Pydantic schemas for relay requests and responses.

Field names are snake_case in Python and camelCase on the wire
(``controllerId``, ``protobufPayload``), matching existing mobile and
controller firmware clients.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.adapters.message_queue.base import QueueEntry
from app.utils.request_validators import encode_payload


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RelayMessageRequest(_CamelModel):
    """Body of a heartbeat or a mobile command.

    ``controller_id`` is left untyped so that the route can apply the relay's
    own identifier rules (and report them) instead of pydantic coercion.
    """

    controller_id: Any = Field(
        default=None,
        description="Controller identifier: non-negative integer (or its decimal string).",
    )
    protobuf_payload: str | None = Field(
        default=None,
        description="Base64-encoded protobuf message, relayed without interpretation.",
    )


class SenderOut(_CamelModel):
    kind: Literal["mobile", "controller"]
    ip: str
    auth_id: str | None = None


class QueueEntryOut(_CamelModel):
    """A relayed message as returned to the polling side."""

    controller_id: str = Field(..., description="Canonical controller identifier.")
    timestamp: str = Field(..., description="ISO-8601 UTC time the relay accepted it.")
    sender: SenderOut
    protobuf_payload: str = Field(..., description="Base64-encoded payload.")
    expires_at: str = Field(..., description="ISO-8601 UTC time after which it is dropped.")

    @classmethod
    def from_entry(cls, entry: QueueEntry) -> "QueueEntryOut":
        return cls(
            controller_id=entry.controller_id,
            timestamp=entry.timestamp,
            sender=SenderOut(
                kind=entry.sender.kind,
                ip=entry.sender.ip,
                auth_id=entry.sender.auth_id,
            ),
            protobuf_payload=encode_payload(entry.payload),
            expires_at=entry.expiry_timestamp,
        )


class AckResponse(_CamelModel):
    """Acknowledgement for an accepted heartbeat or command."""

    success: bool = True
    message: str
    controller_id: str


class MobileMessageResponse(_CamelModel):
    success: bool = True
    message: QueueEntryOut


class ControllerStatusResponse(_CamelModel):
    success: bool = True
    status: QueueEntryOut
