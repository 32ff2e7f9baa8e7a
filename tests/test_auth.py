"""Unit tests for API key authentication module."""

from unittest.mock import patch

import pytest
from fastapi import HTTPException

from app.core.auth import (
    account_id_for,
    is_auth_configured,
    parse_api_keys,
    validate_api_key,
    verify_api_key,
)
from app.core.errors import AuthenticationAppError


class TestParseAPIKeys:
    """Test API key parsing utility function."""

    def test_parse_multiple_keys_with_whitespace(self) -> None:
        result = parse_api_keys("key1 , key2  ,  key3")
        assert result == {"key1", "key2", "key3"}

    @pytest.mark.parametrize("raw", [None, "", "   ,  ,  "])
    def test_parse_empty_inputs(self, raw) -> None:
        assert parse_api_keys(raw) == set()

    def test_parse_removes_duplicate_keys(self) -> None:
        result = parse_api_keys("key1,key2,key1,key3,key2")
        assert result == {"key1", "key2", "key3"}


class TestAccountId:
    def test_is_stable_and_does_not_contain_key(self) -> None:
        account = account_id_for("my-secret-key")

        assert account == account_id_for("my-secret-key")
        assert "my-secret-key" not in account
        assert len(account) == 16

    def test_differs_per_key(self) -> None:
        assert account_id_for("a") != account_id_for("b")


class TestValidateAPIKey:
    """Test core API key validation logic."""

    @patch("app.core.auth.settings")
    def test_validate_bypassed_when_auth_disabled(self, mock_settings) -> None:
        mock_settings.app.api_key_required = False

        validate_api_key("any-random-key")
        validate_api_key("")

    @patch("app.core.auth.settings")
    def test_validate_raises_when_no_keys_configured(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = None

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("some-key")

        assert exc_info.value.code == "api_keys_not_configured"

    @patch("app.core.auth.settings")
    def test_validate_accepts_valid_key(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = " valid-key-1 , valid-key-2 "

        validate_api_key("valid-key-1")
        validate_api_key("valid-key-2")

    @patch("app.core.auth.settings")
    def test_validate_rejects_invalid_key(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key-1,valid-key-2"

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("invalid-key")

        assert exc_info.value.code == "invalid_api_key"


class TestIsAuthConfigured:
    @patch("app.core.auth.settings")
    def test_configured_with_keys(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "k1"

        assert is_auth_configured() is True

    @patch("app.core.auth.settings")
    def test_not_configured_without_keys(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = ""

        assert is_auth_configured() is False

    @patch("app.core.auth.settings")
    def test_configured_when_auth_disabled(self, mock_settings) -> None:
        mock_settings.app.api_key_required = False
        mock_settings.app.api_keys = None

        assert is_auth_configured() is True


class TestVerifyAPIKeyDependency:
    """Test FastAPI dependency for API key verification."""

    @pytest.mark.asyncio
    @patch("app.core.auth.settings")
    async def test_anonymous_when_auth_disabled(self, mock_settings) -> None:
        mock_settings.app.api_key_required = False

        assert await verify_api_key(x_api_key=None) is None

    @pytest.mark.asyncio
    @patch("app.core.auth.settings")
    async def test_identity_kept_when_auth_disabled(self, mock_settings) -> None:
        mock_settings.app.api_key_required = False

        assert await verify_api_key(x_api_key="unchecked") == account_id_for("unchecked")

    @pytest.mark.asyncio
    @patch("app.core.auth.settings")
    async def test_verify_raises_403_when_header_missing(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key"

        with pytest.raises(HTTPException) as exc_info:
            await verify_api_key(x_api_key=None)

        assert exc_info.value.status_code == 403
        assert "Missing API key" in exc_info.value.detail

    @pytest.mark.asyncio
    @patch("app.core.auth.settings")
    async def test_verify_raises_403_when_key_invalid(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key"

        with pytest.raises(HTTPException) as exc_info:
            await verify_api_key(x_api_key="wrong-key")

        assert exc_info.value.status_code == 403
        assert "Invalid or missing API key" in exc_info.value.detail

    @pytest.mark.asyncio
    @patch("app.core.auth.settings")
    async def test_verify_returns_account_for_valid_key(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "my-valid-key,another-key"

        assert await verify_api_key(x_api_key="my-valid-key") == account_id_for("my-valid-key")

    @pytest.mark.asyncio
    @patch("app.core.auth.settings")
    async def test_verify_raises_403_when_keys_not_configured(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = None

        with pytest.raises(HTTPException) as exc_info:
            await verify_api_key(x_api_key="some-key")

        assert exc_info.value.status_code == 403
        assert "no valid keys are configured" in exc_info.value.detail
