"""Routes used by the mobile application.

Mobile clients queue commands for a controller and poll for its latest
status. Every route requires an API key and is rate limited per account and
per source address. Requests are authenticated, then validated, and only then
counted by the rate limiter.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.adapters.message_queue.base import AbstractMessageQueue, Sender
from app.core.auth import verify_api_key
from app.core.message_queue import get_message_queue
from app.core.middleware import client_address
from app.core.rate_limit import enforce_rate_limit
from app.schemas.relay import AckResponse, ControllerStatusResponse, QueueEntryOut, RelayMessageRequest
from app.utils.request_validators import decode_payload, normalize_controller_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mobile", tags=["Mobile"])


@router.post("/message", response_model=AckResponse)
async def post_message(
    body: RelayMessageRequest,
    request: Request,
    account_id: Annotated[str | None, Depends(verify_api_key)],
    queue: Annotated[AbstractMessageQueue, Depends(get_message_queue)],
) -> AckResponse:
    """Queue a command for a controller.

    Commands are delivered in the order they were queued and expire if the
    controller does not poll within the queue TTL.

    Raises:
        ValidationAppError: 400 if controllerId or protobufPayload is invalid.
        HTTPException: 429 if the caller is over its rate limit.
        QueueFullError: 429 if the controller's backlog is at capacity.
    """
    controller_id = normalize_controller_id(body.controller_id)
    payload = decode_payload(body.protobuf_payload)
    enforce_rate_limit(request, account_id)

    queue.enqueue_mobile_message(
        controller_id,
        payload,
        Sender(kind="mobile", ip=client_address(request), auth_id=account_id),
    )
    return AckResponse(message="Message queued for controller", controller_id=controller_id)


@router.get("/status/{controller_id}", response_model=ControllerStatusResponse)
async def get_controller_status(
    controller_id: str,
    request: Request,
    account_id: Annotated[str | None, Depends(verify_api_key)],
    queue: Annotated[AbstractMessageQueue, Depends(get_message_queue)],
) -> ControllerStatusResponse:
    """Return the controller's latest status and consume it.

    Delete-on-read: when several clients poll the same controller only one of
    them receives each status.

    Raises:
        HTTPException: 404 when no live status is stored, 429 when rate limited.
    """
    key = normalize_controller_id(controller_id)
    enforce_rate_limit(request, account_id)

    entry = queue.take_controller_message(key)
    if entry is None:
        logger.debug("mobile.no_status", extra={"controller_id": key})
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No status available for this controller",
        )

    return ControllerStatusResponse(status=QueueEntryOut.from_entry(entry))
