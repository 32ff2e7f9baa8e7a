"""Routes used by physical controller devices.

Controllers post heartbeats (their latest status) and poll for commands queued
by mobile clients. These routes are not authenticated.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.adapters.message_queue.base import AbstractMessageQueue, Sender
from app.core.message_queue import get_message_queue
from app.core.middleware import client_address
from app.schemas.relay import AckResponse, MobileMessageResponse, QueueEntryOut, RelayMessageRequest
from app.utils.request_validators import decode_payload, normalize_controller_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/controller", tags=["Controller"])


@router.post("/heartbeat", response_model=AckResponse)
async def post_heartbeat(
    body: RelayMessageRequest,
    request: Request,
    queue: Annotated[AbstractMessageQueue, Depends(get_message_queue)],
) -> AckResponse:
    """Store a controller's latest status for mobile clients to pick up.

    A newer heartbeat replaces an unread older one.

    Raises:
        ValidationAppError: 400 if controllerId or protobufPayload is invalid.
    """
    controller_id = normalize_controller_id(body.controller_id)
    payload = decode_payload(body.protobuf_payload)

    queue.upsert_controller_message(
        controller_id,
        payload,
        Sender(kind="controller", ip=client_address(request)),
    )
    return AckResponse(message="Heartbeat received", controller_id=controller_id)


@router.get("/messages/{controller_id}", response_model=MobileMessageResponse)
async def get_next_message(
    controller_id: str,
    queue: Annotated[AbstractMessageQueue, Depends(get_message_queue)],
) -> MobileMessageResponse:
    """Deliver the oldest pending mobile command for a controller.

    Each command is delivered once; it is removed from the queue on read.

    Raises:
        HTTPException: 404 when nothing is pending.
    """
    key = normalize_controller_id(controller_id)
    entry = queue.dequeue_mobile_message(key)
    if entry is None:
        logger.debug("controller.no_messages", extra={"controller_id": key})
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No messages available",
        )

    return MobileMessageResponse(message=QueueEntryOut.from_entry(entry))
