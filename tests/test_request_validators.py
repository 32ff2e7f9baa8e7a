"""Tests for controller id and payload validation."""

import base64

import pytest

from app.core.errors import ValidationAppError
from app.utils.request_validators import (
    MAX_CONTROLLER_ID,
    decode_payload,
    encode_payload,
    normalize_controller_id,
)


class TestNormalizeControllerId:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (7, "7"),
            ("7", "7"),
            ("007", "7"),
            (0, "0"),
            (" 42 ", "42"),
            ("0" * 5000 + "7", "7"),
            ("0" * 5000, "0"),
            (MAX_CONTROLLER_ID, str(MAX_CONTROLLER_ID)),
        ],
    )
    def test_accepts_non_negative_integers(self, raw, expected: str) -> None:
        assert normalize_controller_id(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        [
            -1,
            "-1",
            1.5,
            "abc",
            "1e3",
            "\uff17",
            True,
            False,
            [1],
            {"id": 1},
            MAX_CONTROLLER_ID + 1,
            str(MAX_CONTROLLER_ID + 1),
            "1" * 5000,
            "9" * 5000,
        ],
    )
    def test_rejects_invalid_values(self, raw) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            normalize_controller_id(raw)

        assert exc_info.value.code == "invalid_controller_id"

    @pytest.mark.parametrize("raw", [None, ""])
    def test_missing_value(self, raw) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            normalize_controller_id(raw)

        assert exc_info.value.code == "controller_id_required"


class TestPayload:
    def test_decodes_base64_without_interpreting(self) -> None:
        raw = b"\x08\x96\x01\x00\xff"

        assert decode_payload(base64.b64encode(raw).decode()) == raw

    def test_encode_is_inverse_of_decode(self) -> None:
        assert decode_payload(encode_payload(b"status")) == b"status"

    @pytest.mark.parametrize("raw", [None, ""])
    def test_missing_payload(self, raw) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            decode_payload(raw)

        assert exc_info.value.code == "payload_required"

    def test_rejects_non_base64(self) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            decode_payload("not base64!!")

        assert exc_info.value.code == "invalid_payload"
