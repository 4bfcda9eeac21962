"""Decide when to push steps, and make sure only one push runs at a time.

Sync triggers (any one is enough):
    threshold:  the update moved steps_today into a new multiple of T (default 50)
    interval:   at least I (default 5 minutes) since the last successful push
    first_sync: no successful push recorded yet

On service start, pending steps older than the grace window (default 60 s)
are pushed immediately to cover a process that died before its due sync.

Pushes run on a ``SingleFlightRunner``: a trigger that fires while a push is
in flight is dropped, since the next trigger will carry fresher numbers.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Awaitable, Callable

from fittrack.tracker.base import StepUpdate
from fittrack.tracker.config_loader import SyncConfig

logger = logging.getLogger("fittrack.tracker.sync.scheduler")


class SyncTrigger(str, enum.Enum):
    """Why a push was requested.  Used for logging and results."""

    THRESHOLD = "threshold"
    INTERVAL = "interval"
    FIRST_SYNC = "first_sync"
    STARTUP = "startup"
    MANUAL = "manual"
    AUTO = "auto"


@dataclass(frozen=True)
class SyncPolicy:
    """Pure sync decision rules.

    Attributes:
        step_threshold: T, push every time steps_today enters a new multiple of T.
        interval:       I, push if the last successful push is at least this old.
        start_grace:    Push pending steps on start if the last push is older than this.
    """

    step_threshold: int = 50
    interval: timedelta = timedelta(minutes=5)
    start_grace: timedelta = timedelta(seconds=60)

    def __post_init__(self) -> None:
        if self.step_threshold < 1:
            raise ValueError(f"step_threshold must be >= 1, got {self.step_threshold}")

    @classmethod
    def from_config(cls, config: SyncConfig) -> "SyncPolicy":
        return cls(
            step_threshold=config.step_threshold,
            interval=config.interval,
            start_grace=config.start_grace,
        )

    def crossed_threshold(self, previous: int, current: int) -> bool:
        """True if ``current`` sits in a higher multiple-of-T bucket than ``previous``.

        Catches bursts that jump over the exact multiple (48 → 55) and never
        fires on a no-op update (50 → 50).
        """
        if current <= previous:
            return False
        return current // self.step_threshold > previous // self.step_threshold

    def evaluate(self, update: StepUpdate, last_sync_millis: int, now_millis: int) -> SyncTrigger | None:
        """Return the trigger that makes a push due after ``update``, or None."""
        if self.crossed_threshold(update.previous, update.steps):
            return SyncTrigger.THRESHOLD
        if last_sync_millis <= 0:
            return SyncTrigger.FIRST_SYNC
        if now_millis - last_sync_millis >= self._millis(self.interval):
            return SyncTrigger.INTERVAL
        return None

    def should_force_on_start(self, steps_today: int, last_sync_millis: int, now_millis: int) -> bool:
        return steps_today > 0 and now_millis - last_sync_millis > self._millis(self.start_grace)

    @staticmethod
    def _millis(delta: timedelta) -> int:
        return int(delta.total_seconds() * 1000)


class SingleFlightRunner:
    """Run at most one coroutine at a time; extra submissions are dropped.

    Usage::

        runner = SingleFlightRunner("push")
        runner.submit(lambda: client.push(stats))   # starts
        runner.submit(lambda: client.push(stats))   # dropped, returns False
        await runner.join()
    """

    def __init__(self, name: str = "task") -> None:
        self._name = name
        self._task: asyncio.Task | None = None
        self._dropped = 0

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def dropped(self) -> int:
        """Number of submissions ignored because a run was already in flight."""
        return self._dropped

    def submit(self, factory: Callable[[], Awaitable[Any]]) -> bool:
        """Start ``factory()`` as a background task unless one is running.

        Must be called from within a running event loop.  Never blocks.

        Returns:
            True if the task was started, False if it was dropped.
        """
        if self.in_flight:
            self._dropped += 1
            logger.debug("%s already in flight, dropping request", self._name)
            return False
        self._start(factory)
        return True

    async def run_or_join(self, factory: Callable[[], Awaitable[Any]]) -> Any:
        """Run ``factory()`` now, or wait for the in-flight run and return its result."""
        task = self._task
        if task is None or task.done():
            task = self._start(factory)
        return await asyncio.shield(task)

    async def join(self) -> None:
        """Wait for the in-flight run, if any, to finish."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    def _start(self, factory: Callable[[], Awaitable[Any]]) -> asyncio.Task:
        self._task = asyncio.get_running_loop().create_task(self._run(factory))
        return self._task

    async def _run(self, factory: Callable[[], Awaitable[Any]]) -> Any:
        try:
            return await factory()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("%s failed", self._name)
            return None
