"""Tests for the fitness service client, against mock transports and the real app."""

from __future__ import annotations

import json
from datetime import date

import httpx
import pytest

from fittrack.config import Settings
from fittrack.main import create_app
from fittrack.middleware.bearer_auth import issue_token
from fittrack.services.fitness_store import FitnessStore
from fittrack.tracker.auth import AuthSession
from fittrack.tracker.base import DailyStats
from fittrack.tracker.sync.client import BackendError, BackendSyncClient, NotAuthenticatedError
from fittrack.tracker.tests.conftest import TEST_DATE, TEST_TOKEN, TEST_USER_ID

BASE_URL = "http://fitness.test"


def _client(session: AuthSession, handler) -> BackendSyncClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return BackendSyncClient(session, BASE_URL, http_client=http)


def _record(day: str, steps: int) -> dict:
    stats = DailyStats.from_steps(date.fromisoformat(day), steps)
    return {**stats.to_payload(TEST_USER_ID), "date": f"{day}T00:00:00.000Z"}


# ---------------------------------------------------------------------------
# Push
# ---------------------------------------------------------------------------


class TestPush:
    @pytest.mark.asyncio
    async def test_push_sends_bearer_and_payload(self, session: AuthSession) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            body = json.loads(request.content)
            return httpx.Response(201, json={"success": True, "data": body})

        stats = DailyStats.from_steps(TEST_DATE, 450)
        result = await _client(session, handler).push(stats)

        assert result.ok
        assert result.record["steps"] == 450
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/fitness/log"
        assert request.headers["Authorization"] == f"Bearer {TEST_TOKEN}"
        assert json.loads(request.content) == stats.to_payload(TEST_USER_ID)

    @pytest.mark.asyncio
    async def test_unauthenticated_push_makes_no_request(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(201, json={})

        session = AuthSession.with_token(TEST_USER_ID, None)
        result = await _client(session, handler).push(DailyStats.from_steps(TEST_DATE, 10))

        assert result.status == "unauthenticated"
        assert not result.ok
        assert calls == []

    @pytest.mark.asyncio
    async def test_server_error_is_reported(self, session: AuthSession) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="unavailable")

        result = await _client(session, handler).push(DailyStats.from_steps(TEST_DATE, 10))

        assert result.status == "error"
        assert result.status_code == 503
        assert "503" in result.error

    @pytest.mark.asyncio
    async def test_network_error_is_reported(self, session: AuthSession) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        result = await _client(session, handler).push(DailyStats.from_steps(TEST_DATE, 10))

        assert result.status == "error"
        assert result.status_code is None
        assert "connection refused" in result.error


# ---------------------------------------------------------------------------
# Fetch
# ---------------------------------------------------------------------------


class TestFetch:
    @pytest.mark.asyncio
    async def test_history_newest_first_and_limited(self, session: AuthSession) -> None:
        records = [_record(f"2026-02-{d:02d}", 1000 * d) for d in range(16, 24)]

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == f"/fitness/stats/{TEST_USER_ID}/week"
            return httpx.Response(200, json={"period": "week", "data": records})

        days = await _client(session, handler).fetch_history("week", limit=5)

        assert [d.date.day for d in days] == [23, 22, 21, 20, 19]
        assert days[0].steps == 23000

    @pytest.mark.asyncio
    async def test_stats_aggregates(self, session: AuthSession) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "period": "month",
                    "totalSteps": 3000,
                    "totalCalories": 120,
                    "totalDistance": 2.286,
                    "totalActiveMinutes": 30,
                    "averageSteps": 1500,
                    "averageCalories": 60,
                    "data": [_record("2026-02-22", 1000), _record("2026-02-23", 2000)],
                },
            )

        history = await _client(session, handler).fetch_stats("month")

        assert history.period == "month"
        assert history.total_steps == 3000
        assert history.average_steps == 1500
        assert history.days[0].date == TEST_DATE

    @pytest.mark.asyncio
    async def test_unknown_range_rejected(self, session: AuthSession) -> None:
        client = _client(session, lambda request: httpx.Response(200, json={}))
        with pytest.raises(ValueError):
            await client.fetch_stats("decade")

    @pytest.mark.asyncio
    async def test_fetch_without_token_raises(self) -> None:
        session = AuthSession.anonymous()
        client = _client(session, lambda request: httpx.Response(200, json={}))
        with pytest.raises(NotAuthenticatedError):
            await client.fetch_history()

    @pytest.mark.asyncio
    async def test_fetch_failure_raises_backend_error(self, session: AuthSession) -> None:
        client = _client(session, lambda request: httpx.Response(500, text="boom"))
        with pytest.raises(BackendError) as excinfo:
            await client.fetch_today()
        assert excinfo.value.status_code == 500

    @pytest.mark.asyncio
    async def test_non_json_body_raises_backend_error(self, session: AuthSession) -> None:
        client = _client(session, lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(BackendError, match="Non-JSON"):
            await client.fetch_summary()

    @pytest.mark.asyncio
    async def test_non_object_body_raises_backend_error(self, session: AuthSession) -> None:
        client = _client(session, lambda request: httpx.Response(200, json=[1, 2, 3]))
        with pytest.raises(BackendError, match="JSON object"):
            await client.fetch_history()
        with pytest.raises(BackendError, match="JSON object"):
            await client.fetch_today()

    @pytest.mark.asyncio
    async def test_malformed_records_raise_backend_error(self, session: AuthSession) -> None:
        client = _client(
            session,
            lambda request: httpx.Response(
                200, json={"date": "yesterday", "steps": 1, "data": ["oops"], "totalSteps": "many"}
            ),
        )
        with pytest.raises(BackendError, match="Malformed today"):
            await client.fetch_today()
        with pytest.raises(BackendError, match="Malformed stats"):
            await client.fetch_stats()
        with pytest.raises(BackendError, match="Malformed summary"):
            await client.fetch_summary()

    @pytest.mark.asyncio
    async def test_non_object_push_response_is_an_error(self, session: AuthSession) -> None:
        client = _client(session, lambda request: httpx.Response(201, json="ok"))
        result = await client.push(DailyStats.from_steps(TEST_DATE, 10))
        assert result.status == "error"

    @pytest.mark.asyncio
    async def test_summary(self, session: AuthSession) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "totalEntries": 2,
                    "totalSteps": 3000,
                    "lastUpdate": "2026-02-23T09:00:00.000Z",
                },
            )

        summary = await _client(session, handler).fetch_summary()
        assert summary.total_entries == 2
        assert summary.total_steps == 3000
        assert summary.last_update is not None
        assert summary.last_update.hour == 9


# ---------------------------------------------------------------------------
# Against the fitness service app
# ---------------------------------------------------------------------------


@pytest.fixture
def service_settings() -> Settings:
    return Settings(jwt_secret="test-secret", log_level="WARNING")


@pytest.fixture
def fitness_store() -> FitnessStore:
    return FitnessStore()


@pytest.fixture
def app_client(service_settings: Settings, fitness_store: FitnessStore) -> BackendSyncClient:
    app = create_app(service_settings, store=fitness_store)
    token = issue_token(TEST_USER_ID, service_settings)
    session = AuthSession.with_token(TEST_USER_ID, token)
    http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app))
    return BackendSyncClient(session, BASE_URL, http_client=http)


class TestAgainstService:
    @pytest.mark.asyncio
    async def test_repeated_push_is_idempotent(
        self, app_client: BackendSyncClient, fitness_store: FitnessStore
    ) -> None:
        stats = DailyStats.from_steps(TEST_DATE, 1234)

        first = await app_client.push(stats)
        second = await app_client.push(stats)

        assert first.ok and second.ok
        assert len(fitness_store) == 1
        record = await fitness_store.get(TEST_USER_ID, TEST_DATE)
        assert record.steps == 1234
        assert record.calories == stats.calories

    @pytest.mark.asyncio
    async def test_later_push_overwrites_same_day(
        self, app_client: BackendSyncClient, fitness_store: FitnessStore
    ) -> None:
        await app_client.push(DailyStats.from_steps(TEST_DATE, 100))
        await app_client.push(DailyStats.from_steps(TEST_DATE, 150))

        record = await fitness_store.get(TEST_USER_ID, TEST_DATE)
        assert len(fitness_store) == 1
        assert record.steps == 150

    @pytest.mark.asyncio
    async def test_pushed_day_appears_in_history(self, app_client: BackendSyncClient) -> None:
        today = date.today()
        await app_client.push(DailyStats.from_steps(today, 777))

        days = await app_client.fetch_history("week")

        assert days[0].date == today
        assert days[0].steps == 777
        assert days[0].active_minutes == 7

    @pytest.mark.asyncio
    async def test_invalid_token_reported_as_error(self, service_settings: Settings) -> None:
        app = create_app(service_settings)
        session = AuthSession.with_token(TEST_USER_ID, "not-a-jwt")
        http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app))
        client = BackendSyncClient(session, BASE_URL, http_client=http)

        result = await client.push(DailyStats.from_steps(TEST_DATE, 5))

        assert result.status == "error"
        assert result.status_code == 403


class TestAuthSession:
    def test_token_provider_is_read_on_each_call(self) -> None:
        tokens = iter(["first", "second"])
        session = AuthSession(user_id=TEST_USER_ID, token_provider=lambda: next(tokens))
        assert session.token == "first"
        assert session.token == "second"

    def test_anonymous_is_not_authenticated(self) -> None:
        assert AuthSession.anonymous().is_authenticated is False
        assert AuthSession.with_token(TEST_USER_ID, None).is_authenticated is False
        assert AuthSession.with_token(TEST_USER_ID, TEST_TOKEN).is_authenticated is True
