"""Shared fixtures for tracker tests."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from fittrack.tracker.accumulator import DailyStepAccumulator
from fittrack.tracker.auth import AuthSession
from fittrack.tracker.base import DailyStats, SensorKind
from fittrack.tracker.config_loader import TrackerConfig, load_tracker_config
from fittrack.tracker.store import InMemoryStateStore
from fittrack.tracker.sync.client import SyncResult

TEST_USER_ID = "user-12345678"
TEST_TOKEN = "test-token"
TEST_DATE = date(2026, 2, 23)


class FakeClock:
    """Settable local clock; call it to read the time."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def next_day(self) -> datetime:
        return self.advance(days=1)


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 2, 23, 9, 0, 0))


@pytest.fixture
def store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture
def session() -> AuthSession:
    return AuthSession.with_token(TEST_USER_ID, TEST_TOKEN, email="walker@example.com")


@pytest.fixture
def tracker_config() -> TrackerConfig:
    """Load the bundled tracker config."""
    return load_tracker_config()


@pytest.fixture
def counter_accumulator(store: InMemoryStateStore, clock: FakeClock) -> DailyStepAccumulator:
    acc = DailyStepAccumulator(TEST_USER_ID, store, SensorKind.COUNTER, clock=clock)
    acc.restore()
    return acc


@pytest.fixture
def detector_accumulator(store: InMemoryStateStore, clock: FakeClock) -> DailyStepAccumulator:
    acc = DailyStepAccumulator(TEST_USER_ID, store, SensorKind.DETECTOR, clock=clock)
    acc.restore()
    return acc


# ---------------------------------------------------------------------------
# Mock sync client
# ---------------------------------------------------------------------------


def ok_result(stats: DailyStats) -> SyncResult:
    return SyncResult(stats=stats, status="success")


def failed_result(stats: DailyStats) -> SyncResult:
    return SyncResult(stats=stats, status="error", status_code=503, error="HTTP 503")


@pytest.fixture
def mock_client(session: AuthSession) -> MagicMock:
    """BackendSyncClient stand-in whose push always succeeds."""
    client = MagicMock()
    client.session = session
    client.push = AsyncMock(side_effect=ok_result)
    client.fetch_history = AsyncMock(return_value=[])
    return client
