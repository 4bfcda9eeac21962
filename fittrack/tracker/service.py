"""Long-lived step counting service.

One task consumes sensor events from a queue in arrival order and applies
them to the accumulator; after every update the sync policy decides whether
a push is due.  Pushes run on a single-flight runner, so sensor processing
never waits on the network and at most one push is in flight.

Workflow per event:
    1. Day-rollover check, then apply the event (accumulator)
    2. Persist state (accumulator, before returning)
    3. Evaluate the sync triggers (policy)
    4. Submit a push unless one is already running (runner)
    5. On push success, record the sync time (accumulator)
"""

from __future__ import annotations

import asyncio
import logging

from fittrack.tracker.accumulator import DailyStepAccumulator
from fittrack.tracker.base import (
    Clock,
    DailyStepState,
    SensorEvent,
    SensorKind,
    StepUpdate,
    TrackerStatus,
    epoch_millis,
    local_now,
)
from fittrack.tracker.sync.client import BackendSyncClient, SyncResult
from fittrack.tracker.sync.scheduler import SingleFlightRunner, SyncPolicy, SyncTrigger

logger = logging.getLogger("fittrack.tracker.service")


class StepCounterService:
    """Background step counter for one signed-in user.

    Usage::

        service = StepCounterService(accumulator, client, SyncPolicy())
        reader = SensorReader(sensor, service.queue)
        await asyncio.gather(service.run(), reader.run())
    """

    def __init__(
        self,
        accumulator: DailyStepAccumulator,
        client: BackendSyncClient,
        policy: SyncPolicy | None = None,
        sensor_kind: SensorKind | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            accumulator: Owns the user's step state.
            client:      Fitness service client for the same user.
            policy:      Sync trigger rules.
            sensor_kind: Kind of the sensor feeding the queue; None if the
                         device has no step sensor.
            clock:       Local time source.
        """
        if accumulator.user_id != client.session.user_id:
            raise ValueError(
                f"Accumulator user {accumulator.user_id!r} does not match "
                f"session user {client.session.user_id!r}"
            )
        self._accumulator = accumulator
        self._client = client
        self._policy = policy or SyncPolicy()
        self._sensor_kind = sensor_kind
        self._clock = clock or local_now
        self._queue: asyncio.Queue[SensorEvent] = asyncio.Queue()
        self._runner = SingleFlightRunner(f"push[{accumulator.user_id}]")
        self._started = False
        self._last_result: SyncResult | None = None

    @property
    def queue(self) -> asyncio.Queue[SensorEvent]:
        return self._queue

    @property
    def sync_in_flight(self) -> bool:
        return self._runner.in_flight

    @property
    def last_result(self) -> SyncResult | None:
        return self._last_result

    def snapshot(self) -> DailyStepState:
        """Read-only copy of the current state for observers."""
        return self._accumulator.state

    def status(self) -> TrackerStatus:
        state = self._accumulator.state
        return TrackerStatus(
            user_id=self._accumulator.user_id,
            sensor_kind=self._sensor_kind,
            steps_today=state.steps_today,
            day=state.last_sync_date,
            last_backend_sync_timestamp=state.last_backend_sync_timestamp,
            sync_in_flight=self._runner.in_flight,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Restore state, check rollover, and push stale steps if needed."""
        state = self._accumulator.restore()
        self._started = True
        if self._sensor_kind is None:
            logger.warning(
                "No step sensor for %s; step count stays at %d",
                self._accumulator.user_id,
                state.steps_today,
            )

        now = epoch_millis(self._clock())
        if self._policy.should_force_on_start(
            state.steps_today, state.last_backend_sync_timestamp, now
        ):
            logger.info("Forcing sync of %d pending steps on start", state.steps_today)
            self.request_sync(SyncTrigger.STARTUP)

    def submit(self, event: SensorEvent) -> None:
        """Enqueue a sensor event without blocking."""
        self._queue.put_nowait(event)

    async def run(self) -> None:
        """Process events until cancelled."""
        if not self._started:
            await self.start()
        while True:
            event = await self._queue.get()
            try:
                self.handle(event)
            except Exception:
                logger.exception("Failed to process sensor event %r", event)
            finally:
                self._queue.task_done()

    async def drain(self) -> None:
        """Wait until queued events are processed and any push has finished."""
        await self._queue.join()
        await self._runner.join()

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def handle(self, event: SensorEvent) -> StepUpdate:
        """Apply one event and submit a push if a trigger fires."""
        update = self._accumulator.apply(event)
        state = self._accumulator.state
        trigger = self._policy.evaluate(
            update, state.last_backend_sync_timestamp, epoch_millis(self._clock())
        )
        if trigger is not None:
            logger.info(
                "Sync condition met (%s): previous=%d current=%d",
                trigger.value,
                update.previous,
                update.steps,
            )
            self.request_sync(trigger)
        return update

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def request_sync(self, trigger: SyncTrigger) -> bool:
        """Start a push in the background unless one is in flight.

        Returns:
            True if a push was started.
        """
        started = self._runner.submit(lambda: self._push(trigger))
        if not started:
            logger.debug("Push already in flight, %s trigger dropped", trigger.value)
        return started

    async def sync_now(self, trigger: SyncTrigger = SyncTrigger.MANUAL) -> SyncResult | None:
        """Push now, or wait for the push already in flight and return its result."""
        return await self._runner.run_or_join(lambda: self._push(trigger))

    async def _push(self, trigger: SyncTrigger) -> SyncResult:
        stats = self._accumulator.daily_stats()
        logger.debug("Starting %s push of %d steps for %s", trigger.value, stats.steps, stats.date)
        result = await self._client.push(stats)
        if result.ok:
            self._accumulator.mark_synced(epoch_millis(self._clock()))
        else:
            logger.warning(
                "%s push of %d steps failed (%s): %s",
                trigger.value,
                stats.steps,
                result.status,
                result.error,
            )
        self._last_result = result
        return result
