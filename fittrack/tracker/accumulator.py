"""Daily step accumulator.

Turns raw sensor events into the per-day step count for one user.  The
accumulator is the single writer of that user's ``DailyStepState``: every
mutation goes through it and is persisted before the call returns.

Counter mode
    Each event carries the cumulative count since boot.  The first event of
    a day captures the baseline; afterwards
    ``steps_today = total - initial_sensor_value``.  If the counter drops
    below the last reading (device reboot) the baseline is re-captured so
    the steps already counted today are kept.

Detector mode
    Each event is exactly one step.
"""

from __future__ import annotations

import logging
from datetime import date

from fittrack.tracker.base import (
    Clock,
    DailyStats,
    DailyStepState,
    SensorEvent,
    SensorKind,
    StepUpdate,
    local_now,
)
from fittrack.tracker.store import StateStore, StoreError

logger = logging.getLogger("fittrack.tracker.accumulator")


class DailyStepAccumulator:
    """Accumulate steps for one user and one sensor mode.

    Usage::

        acc = DailyStepAccumulator("user-1", store, SensorKind.COUNTER)
        acc.restore()
        update = acc.apply(SensorEvent.counter(12000))
    """

    def __init__(
        self,
        user_id: str,
        store: StateStore,
        mode: SensorKind,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the accumulator.

        Args:
            user_id: Identity whose state this accumulator owns.
            store:   Local persistence backend.
            mode:    Sensor mode, fixed for the lifetime of the accumulator.
            clock:   Returns local wall-clock time; defaults to ``datetime.now``.
        """
        self._user_id = user_id
        self._store = store
        self._mode = mode
        self._clock = clock or local_now
        self._state = DailyStepState(last_sync_date=self._today())
        self._persist_failed = False

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def mode(self) -> SensorKind:
        return self._mode

    @property
    def state(self) -> DailyStepState:
        """A copy of the current state; callers can never mutate the original."""
        return self._state.copy()

    @property
    def steps_today(self) -> int:
        return self._state.steps_today

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def restore(self) -> DailyStepState:
        """Load persisted state and apply the day-rollover check.

        A missing or unreadable record starts a fresh day.
        """
        try:
            stored = self._store.load(self._user_id)
        except StoreError as exc:
            logger.error("Could not load step state for %s: %s", self._user_id, exc)
            stored = None

        if stored is not None:
            if stored.last_sync_date is None:
                stored.last_sync_date = self._today()
            self._state = stored
            logger.info(
                "Restored %d steps for %s (day=%s, last sync=%s)",
                stored.steps_today,
                self._user_id,
                stored.last_sync_date,
                stored.last_backend_sync_timestamp or "never",
            )
        else:
            self._state = DailyStepState(last_sync_date=self._today())
            logger.info("No stored step state for %s, starting fresh", self._user_id)

        if not self.check_rollover():
            self._persist()
        return self.state

    def check_rollover(self, today: date | None = None) -> bool:
        """Reset the counters if the stored day is not today.

        Returns:
            True if a new day started (state was reset and persisted).
        """
        today = today or self._today()
        if self._state.last_sync_date == today:
            return False

        logger.info(
            "New day detected for %s (%s → %s), resetting %d steps",
            self._user_id,
            self._state.last_sync_date,
            today,
            self._state.steps_today,
        )
        self._state.steps_today = 0
        self._state.initial_sensor_value = None
        self._state.last_sync_date = today
        self._persist()
        return True

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def apply(self, event: SensorEvent) -> StepUpdate:
        """Apply one sensor event and persist the result.

        The rollover check runs first, so an event arriving just after
        midnight is counted as the first event of the new day.

        Args:
            event: Raw reading from the configured sensor.

        Returns:
            StepUpdate describing the change.
        """
        rolled_over = self.check_rollover()
        previous = self._state.steps_today

        if event.kind is not self._mode:
            logger.warning(
                "Ignoring %s event: accumulator for %s is in %s mode",
                event.kind.value,
                self._user_id,
                self._mode.value,
            )
            return StepUpdate(previous=previous, steps=previous, rolled_over=rolled_over)

        rebaselined = False
        if self._mode is SensorKind.COUNTER:
            rebaselined = self._apply_counter(event.total_steps)
        else:
            self._state.steps_today += 1
            logger.debug("Step detected for %s, total %d", self._user_id, self._state.steps_today)

        self._persist()
        return StepUpdate(
            previous=previous,
            steps=self._state.steps_today,
            rolled_over=rolled_over,
            rebaselined=rebaselined,
        )

    def _apply_counter(self, total: int) -> bool:
        state = self._state
        rebaselined = False

        if state.initial_sensor_value is None:
            state.initial_sensor_value = total - state.steps_today
            rebaselined = True
            logger.debug("Captured counter baseline %d for %s", state.initial_sensor_value, self._user_id)
        elif total < state.initial_sensor_value + state.steps_today:
            # Counter restarted (reboot); keep today's steps and count on from here.
            logger.info(
                "Step counter for %s went backwards (%d < %d), re-baselining",
                self._user_id,
                total,
                state.initial_sensor_value + state.steps_today,
            )
            state.initial_sensor_value = total - state.steps_today
            rebaselined = True

        state.steps_today = total - state.initial_sensor_value
        logger.debug(
            "Steps today for %s: %d (total=%d, initial=%d)",
            self._user_id,
            state.steps_today,
            total,
            state.initial_sensor_value,
        )
        return rebaselined

    # ------------------------------------------------------------------
    # Sync bookkeeping
    # ------------------------------------------------------------------

    def mark_synced(self, at_millis: int) -> None:
        """Record a successful push and persist."""
        self._state.last_backend_sync_timestamp = at_millis
        self._persist()

    def daily_stats(self) -> DailyStats:
        """Stats for the day this state belongs to, ready to push."""
        return DailyStats.from_steps(
            self._state.last_sync_date or self._today(), self._state.steps_today
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _persist(self) -> None:
        try:
            self._store.save(self._user_id, self._state)
        except StoreError as exc:
            # In-memory state stays authoritative until the next write lands.
            logger.error("Failed to persist step state for %s: %s", self._user_id, exc)
            self._persist_failed = True
        else:
            if self._persist_failed:
                logger.info("Step state for %s persisted again", self._user_id)
            self._persist_failed = False

    def _today(self) -> date:
        return self._clock().date()
