"""Merge live local steps with remote history for display.

The dashboard shows one list of ``DailyStats``, newest first.  The remote
history is fetched asynchronously; the local accumulator state is polled on
a fixed cadence.  For today the local sensor is authoritative:

    remote head is today   → steps = max(local, remote), metrics from local steps
    remote head is older   → a local-only entry for today is prepended
    remote unavailable     → local-only single-day view, backend flagged disconnected

When the backend reports no data at all while the device has steps, one
automatic push-then-refetch runs after a short delay.  A manual sync runs the
same sequence on demand.  Both share a single-flight guard.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import Awaitable, Callable

from fittrack.tracker.base import Clock, DailyStats, DailyStepState, local_now
from fittrack.tracker.config_loader import DashboardConfig
from fittrack.tracker.sync.client import BackendError, BackendSyncClient, SyncResult
from fittrack.tracker.sync.scheduler import SyncTrigger

logger = logging.getLogger("fittrack.tracker.reconcile")

SyncFn = Callable[[SyncTrigger], Awaitable[SyncResult | None]]


@dataclass(frozen=True)
class DashboardView:
    """What the UI renders.

    Attributes:
        days:              Merged stats, most recent first.
        backend_connected: False when the last history fetch failed.
        remote_empty:      The backend answered with no records at all.
        syncing:           A dashboard-initiated sync is running.
        error:             Message from the last failed fetch.
    """

    days: list[DailyStats]
    backend_connected: bool
    remote_empty: bool
    syncing: bool
    error: str | None = None

    @property
    def today(self) -> DailyStats:
        return self.days[0]


def local_steps_for(state: DailyStepState, today: date) -> int:
    """Local steps for ``today``; stale state from an earlier day counts as 0."""
    if state.last_sync_date != today:
        return 0
    return state.steps_today


def merge_daily_stats(
    remote: list[DailyStats] | None, local_steps: int, today: date
) -> list[DailyStats]:
    """Merge remote history with today's local steps.

    Args:
        remote:      Remote history in any order, or None if unavailable.
        local_steps: Steps counted on the device today.
        today:       The device's local calendar day.

    Returns:
        Stats ordered most recent first; never empty.
    """
    local = DailyStats.from_steps(today, local_steps)
    if not remote:
        return [local]

    days = sorted(remote, key=lambda d: d.date, reverse=True)
    head = days[0]
    if head.date == today:
        days[0] = DailyStats(
            date=today,
            steps=max(local_steps, head.steps),
            calories=local.calories,
            distance=local.distance,
            active_minutes=local.active_minutes,
        )
    else:
        days.insert(0, local)
    return days


class DashboardReconciler:
    """Keep a merged dashboard view up to date.

    Read-only with respect to step state: it reads snapshots through
    ``local_state`` and asks the service to push through ``sync``.
    """

    def __init__(
        self,
        local_state: Callable[[], DailyStepState],
        client: BackendSyncClient,
        sync: SyncFn,
        config: DashboardConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the reconciler.

        Args:
            local_state: Returns a snapshot of the accumulator state.
            client:      Used for history fetches.
            sync:        Pushes today's stats, e.g. ``StepCounterService.sync_now``.
            config:      Poll cadence, auto-sync delay, history window.
            clock:       Local time source.
        """
        self._local_state = local_state
        self._client = client
        self._sync = sync
        self._config = config or DashboardConfig()
        self._clock = clock or local_now
        self._remote: list[DailyStats] | None = None
        self._fetch_error: str | None = None
        self._sync_task: asyncio.Task | None = None
        self._auto_synced_steps: int | None = None
        self._auto_sync_count = 0

    @property
    def syncing(self) -> bool:
        return self._sync_task is not None and not self._sync_task.done()

    @property
    def auto_sync_count(self) -> int:
        return self._auto_sync_count

    # ------------------------------------------------------------------
    # Fetch / merge
    # ------------------------------------------------------------------

    async def refresh(self) -> DashboardView:
        """Fetch remote history and return the merged view.

        Fetch failures degrade to a local-only view; they are not raised.
        """
        try:
            self._remote = await self._client.fetch_history(
                self._config.history_range, self._config.history_limit
            )
            self._fetch_error = None
            logger.debug("Fetched %d remote days", len(self._remote))
        except BackendError as exc:
            logger.warning("Backend not connected, showing local steps only: %s", exc)
            self._remote = None
            self._fetch_error = str(exc)
        return self.view()

    def view(self) -> DashboardView:
        today = self._clock().date()
        local_steps = local_steps_for(self._local_state(), today)
        return DashboardView(
            days=merge_daily_stats(self._remote, local_steps, today),
            backend_connected=self._fetch_error is None,
            remote_empty=self._remote == [],
            syncing=self.syncing,
            error=self._fetch_error,
        )

    # ------------------------------------------------------------------
    # Polling / auto-sync
    # ------------------------------------------------------------------

    async def poll(self) -> DashboardView:
        """One poll tick: rebuild the view and start an auto-sync if needed."""
        view = self.view()
        self._maybe_auto_sync(view.today.steps)
        return view

    def _maybe_auto_sync(self, local_steps: int) -> bool:
        if self._remote != [] or local_steps <= 0 or self.syncing:
            return False
        if self._auto_synced_steps == local_steps:
            # Already tried with these numbers; wait for new steps.
            return False

        logger.info("Backend empty but %d steps locally, scheduling auto-sync", local_steps)
        self._auto_synced_steps = local_steps
        self._auto_sync_count += 1
        self._sync_task = asyncio.get_running_loop().create_task(
            self._sync_then_refresh(SyncTrigger.AUTO, self._config.auto_sync_delay_seconds)
        )
        return True

    async def manual_sync(self) -> bool:
        """Push then refetch.  Returns False if a sync is already running."""
        if self.syncing:
            logger.debug("Manual sync ignored, sync already in progress")
            return False
        logger.info("Manual sync triggered by user")
        self._sync_task = asyncio.get_running_loop().create_task(
            self._sync_then_refresh(SyncTrigger.MANUAL, 0.0)
        )
        await asyncio.shield(self._sync_task)
        return True

    async def _sync_then_refresh(self, trigger: SyncTrigger, delay: float) -> None:
        if delay:
            # Give an in-flight service push time to land before pushing again.
            await asyncio.sleep(delay)
        result = await self._sync(trigger)
        if result is not None and not result.ok:
            logger.warning("%s sync failed: %s", trigger.value, result.error)
        await self.refresh()

    async def join(self) -> None:
        """Wait for a running dashboard sync, if any."""
        if self._sync_task is not None:
            await asyncio.gather(self._sync_task, return_exceptions=True)

    async def run(self, on_view: Callable[[DashboardView], None] | None = None) -> None:
        """Fetch once, then poll every ``poll_interval_seconds`` until cancelled."""
        view = await self.refresh()
        while True:
            if on_view is not None:
                on_view(view)
            await asyncio.sleep(self._config.poll_interval_seconds)
            view = await self.poll()
