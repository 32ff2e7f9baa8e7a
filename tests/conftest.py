"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before any app import so that settings are
built from them instead of a developer's .env file.
"""

import os

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest


class FakeClock:
    """Deterministic clock used to test expiry and window logic."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def fresh_engines(monkeypatch: pytest.MonkeyPatch) -> None:
    """Give every test its own process-wide queue and rate limiter."""
    from app.core import message_queue, rate_limit

    monkeypatch.setattr(message_queue, "_queue", None)
    monkeypatch.setattr(rate_limit, "_limiter", None)
