"""Validation of relay request fields.

Controller identifiers and payloads are checked here, before anything reaches
the message queue. The queue itself treats both as opaque.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any

from app.core.errors import ValidationAppError

logger = logging.getLogger(__name__)

# Largest integer a JavaScript client can represent exactly (2**53 - 1)
MAX_CONTROLLER_ID = 9_007_199_254_740_991
_MAX_CONTROLLER_ID_DIGITS = len(str(MAX_CONTROLLER_ID))


def _parse_decimal(text: str) -> int | None:
    """Parse an ASCII decimal string, or return None.

    Leading zeros are ignored for the length check, so ``"007"`` is valid but
    a string with more significant digits than any safe id is rejected before
    ``int()`` has to convert it.
    """
    if not (text.isascii() and text.isdecimal()):
        return None
    significant = text.lstrip("0") or "0"
    if len(significant) > _MAX_CONTROLLER_ID_DIGITS:
        return None
    return int(significant)


def normalize_controller_id(value: Any) -> str:
    """Canonicalize a controller identifier to its decimal string form.

    Accepts JSON integers and decimal strings, so ``7``, ``"7"`` and ``"007"``
    all address the same queue key ``"7"``.

    Args:
        value: Raw identifier from a request body or path.

    Returns:
        Decimal string key.

    Raises:
        ValidationAppError: If the value is missing, not an integer, negative,
            or beyond the safe integer range.
    """
    if value is None or value == "":
        raise ValidationAppError(
            code="controller_id_required",
            message="controllerId is required",
            details={"field": "controllerId"},
        )

    # bool is an int subclass; true/false are not identifiers
    if isinstance(value, bool):
        number = None
    elif isinstance(value, int):
        number = value
    elif isinstance(value, str):
        number = _parse_decimal(value.strip())
    else:
        number = None

    if number is None or number < 0 or number > MAX_CONTROLLER_ID:
        logger.info(
            "controller_id.invalid",
            extra={"value_type": type(value).__name__},
        )
        raise ValidationAppError(
            code="invalid_controller_id",
            message="controllerId must be a safe non-negative integer",
            details={
                "field": "controllerId",
                "hint": f"Use an integer between 0 and {MAX_CONTROLLER_ID}",
            },
        )

    return str(number)


def decode_payload(value: str | None) -> bytes:
    """Decode a base64 protobuf payload into raw bytes.

    The bytes are not parsed; only the transport encoding is checked.

    Raises:
        ValidationAppError: If the payload is missing, empty or not base64.
    """
    if not value:
        raise ValidationAppError(
            code="payload_required",
            message="protobufPayload is required",
            details={"field": "protobufPayload"},
        )

    try:
        payload = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationAppError(
            code="invalid_payload",
            message="protobufPayload must be base64 encoded",
            details={"field": "protobufPayload"},
        ) from exc

    if not payload:
        raise ValidationAppError(
            code="payload_required",
            message="protobufPayload is required",
            details={"field": "protobufPayload"},
        )
    return payload


def encode_payload(payload: bytes) -> str:
    return base64.b64encode(payload).decode("ascii")
