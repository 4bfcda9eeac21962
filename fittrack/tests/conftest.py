"""Shared fixtures for fitness service tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from fittrack.config import Settings
from fittrack.main import create_app
from fittrack.middleware.bearer_auth import issue_token
from fittrack.services.fitness_store import FitnessStore

TEST_SECRET = "test-secret"
TEST_USER_ID = "user-12345678"


class StepClock:
    """UTC clock that moves forward one minute per read."""

    def __init__(self) -> None:
        self.now = datetime(2026, 2, 23, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(minutes=1)
        return current


@pytest.fixture
def settings() -> Settings:
    return Settings(jwt_secret=TEST_SECRET, log_level="WARNING", environment="test")


@pytest.fixture
def store() -> FitnessStore:
    return FitnessStore(clock=StepClock())


@pytest.fixture
def client(settings: Settings, store: FitnessStore) -> TestClient:
    return TestClient(create_app(settings, store=store))


@pytest.fixture
def auth_headers(settings: Settings) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_token(TEST_USER_ID, settings)}"}
