"""Shared pytest fixtures and configuration for pytest."""

from datetime import datetime, timedelta, timezone

import pytest

VALID_TOKEN = "bp_sk_test_0123456789"


class FakeClock:
    """Manually advanced UTC clock for session expiry tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def valid_token() -> str:
    return VALID_TOKEN
