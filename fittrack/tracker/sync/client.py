"""HTTP client for the FitTrack fitness service.

Endpoints used:
    POST /fitness/log                      — upsert one day's stats (idempotent per user + day)
    GET  /fitness/today/{userId}           — today's stored record or a zeroed default
    GET  /fitness/stats/{userId}/{range}   — history for week / month / year plus totals
    GET  /fitness/summary/{userId}         — all-time totals

Every call sends ``Authorization: Bearer <token>``.  Without a token the
client fails fast with ``NotAuthenticatedError`` and makes no request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx

from fittrack.tracker.auth import AuthSession
from fittrack.tracker.base import Clock, DailyStats, local_now

logger = logging.getLogger("fittrack.tracker.sync.client")

STATS_RANGES = ("week", "month", "year")


class BackendError(RuntimeError):
    """Network failure or non-2xx response from the fitness service."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotAuthenticatedError(BackendError):
    """No bearer token is available for the current session."""

    def __init__(self, message: str = "User not authenticated") -> None:
        super().__init__(message, status_code=None)


@dataclass
class SyncResult:
    """Outcome of one push.

    Attributes:
        stats:       The stats that were pushed.
        status:      'success', 'error' or 'unauthenticated'.
        status_code: HTTP status when a response was received.
        error:       Error message when status != 'success'.
        record:      Stored record echoed back by the service.
        synced_at:   Local time the push completed.
    """

    stats: DailyStats
    status: str = "success"
    status_code: int | None = None
    error: str | None = None
    record: dict = field(default_factory=dict)
    synced_at: datetime = field(default_factory=local_now)

    @property
    def ok(self) -> bool:
        return self.status == "success"


@dataclass
class StatsHistory:
    """Response of the stats endpoint, with ``days`` ordered most recent first."""

    period: str
    days: list[DailyStats]
    total_steps: int = 0
    total_calories: int = 0
    total_distance: float = 0.0
    total_active_minutes: int = 0
    average_steps: int = 0
    average_calories: int = 0


@dataclass
class FitnessSummary:
    total_entries: int = 0
    total_steps: int = 0
    total_calories: int = 0
    total_distance: float = 0.0
    total_active_minutes: int = 0
    last_update: datetime | None = None


class BackendSyncClient:
    """Push and fetch daily stats for one authenticated session.

    Usage::

        client = BackendSyncClient(session, "http://localhost:3002")
        result = await client.push(DailyStats.from_steps(date.today(), 1200))
        if not result.ok:
            logger.warning("will retry on next trigger: %s", result.error)
    """

    def __init__(
        self,
        session: AuthSession,
        base_url: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            session:     Authenticated user; supplies user id and bearer token.
            base_url:    Fitness service root, e.g. ``http://localhost:3002``.
            http_client: Optional pre-configured httpx client (for testing).
            timeout:     Per-request timeout in seconds.
            clock:       Local time source for result timestamps.
        """
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._http_client = http_client
        self._timeout = timeout
        self._clock = clock or local_now

    @property
    def session(self) -> AuthSession:
        return self._session

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    async def push(self, stats: DailyStats) -> SyncResult:
        """Upsert ``stats`` for the session user.

        Never raises for network, HTTP or auth failures; they are reported in
        the returned SyncResult so the caller can leave its state untouched
        and retry on the next trigger.
        """
        logger.debug(
            "Pushing %s: steps=%d calories=%d distance=%.3fkm",
            stats.date, stats.steps, stats.calories, stats.distance,
        )
        try:
            body = await self._request(
                "POST", "/fitness/log", json=stats.to_payload(self._session.user_id)
            )
        except NotAuthenticatedError as exc:
            logger.error("Push for %s skipped: %s", stats.date, exc)
            return SyncResult(stats=stats, status="unauthenticated", error=str(exc), synced_at=self._clock())
        except BackendError as exc:
            logger.warning("Push for %s failed: %s", stats.date, exc)
            return SyncResult(
                stats=stats,
                status="error",
                status_code=exc.status_code,
                error=str(exc),
                synced_at=self._clock(),
            )

        record = body.get("data") or {}
        logger.info("Synced %d steps for %s to backend", stats.steps, stats.date)
        return SyncResult(stats=stats, status="success", record=record, synced_at=self._clock())

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    async def fetch_today(self) -> DailyStats:
        """Return today's stored stats (zeroed when nothing is stored).

        Raises:
            NotAuthenticatedError: No token.
            BackendError:          Network error or non-2xx response.
        """
        body = await self._request("GET", f"/fitness/today/{self._session.user_id}")
        try:
            return DailyStats.from_record(body)
        except (TypeError, ValueError) as exc:
            raise BackendError(f"Malformed today response: {exc}") from exc

    async def fetch_stats(self, range_: str = "week") -> StatsHistory:
        """Return the history and aggregates for ``range_``.

        Raises:
            ValueError:            Unknown range.
            NotAuthenticatedError: No token.
            BackendError:          Network error or non-2xx response.
        """
        if range_ not in STATS_RANGES:
            raise ValueError(f"range must be one of {STATS_RANGES}, got {range_!r}")

        body = await self._request("GET", f"/fitness/stats/{self._session.user_id}/{range_}")
        try:
            days = [DailyStats.from_record(r) for r in body.get("data") or []]
            history = StatsHistory(
                period=str(body.get("period", range_)),
                days=days,
                total_steps=int(body.get("totalSteps") or 0),
                total_calories=int(body.get("totalCalories") or 0),
                total_distance=float(body.get("totalDistance") or 0.0),
                total_active_minutes=int(body.get("totalActiveMinutes") or 0),
                average_steps=int(body.get("averageSteps") or 0),
                average_calories=int(body.get("averageCalories") or 0),
            )
        except (AttributeError, TypeError, ValueError) as exc:
            raise BackendError(f"Malformed stats response: {exc}") from exc
        history.days.sort(key=lambda d: d.date, reverse=True)
        return history

    async def fetch_history(self, range_: str = "week", limit: int = 5) -> list[DailyStats]:
        """Most recent ``limit`` days of ``range_``, newest first."""
        history = await self.fetch_stats(range_)
        return history.days[:limit]

    async def fetch_summary(self) -> FitnessSummary:
        """All-time totals for the session user."""
        body = await self._request("GET", f"/fitness/summary/{self._session.user_id}")
        try:
            return FitnessSummary(
                total_entries=int(body.get("totalEntries") or 0),
                total_steps=int(body.get("totalSteps") or 0),
                total_calories=int(body.get("totalCalories") or 0),
                total_distance=float(body.get("totalDistance") or 0.0),
                total_active_minutes=int(body.get("totalActiveMinutes") or 0),
                last_update=_parse_iso_datetime(body.get("lastUpdate")),
            )
        except (TypeError, ValueError) as exc:
            raise BackendError(f"Malformed summary response: {exc}") from exc

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _build_headers(self) -> dict[str, str]:
        token = self._session.token
        if not token:
            raise NotAuthenticatedError()
        return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}

    async def _request(self, method: str, path: str, json: dict | None = None) -> dict[str, Any]:
        """Make an authenticated request and return the decoded JSON object.

        Raises:
            NotAuthenticatedError: No token (raised before any I/O).
            BackendError:          Network error, non-2xx, or a body that is not a JSON object.
        """
        headers = self._build_headers()
        url = f"{self._base_url}{path}"

        try:
            if self._http_client is not None:
                response = await self._http_client.request(
                    method, url, json=json, headers=headers, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.request(method, url, json=json, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise BackendError(
                f"HTTP {status} from {method} {path}: {exc.response.text[:200]}",
                status_code=status,
            ) from exc
        except httpx.HTTPError as exc:
            raise BackendError(f"Network error on {method} {path}: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise BackendError(f"Non-JSON response from {method} {path}") from exc
        if not isinstance(body, dict):
            raise BackendError(
                f"Expected a JSON object from {method} {path}, got {type(body).__name__}"
            )
        return body


def _parse_iso_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        logger.warning("Could not parse datetime string: %r", value)
        return None
