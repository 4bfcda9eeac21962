"""Composition root for the on-device tracker.

Wires sensor, accumulator, sync client, service and dashboard reconciler for
one signed-in user.

Usage::

    tracker = build_tracker(session, counter_sensor=ReplaySensor(SensorKind.COUNTER, [12000, 12050]))
    await tracker.run()
"""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass

import httpx

from fittrack.config import Settings, get_settings
from fittrack.tracker.accumulator import DailyStepAccumulator
from fittrack.tracker.auth import AuthSession
from fittrack.tracker.base import Clock, SensorKind, TrackerStatus
from fittrack.tracker.config_loader import TrackerConfig, get_tracker_config
from fittrack.tracker.reconcile import DashboardReconciler, DashboardView
from fittrack.tracker.sensors import SensorReader, StepSensor, choose_sensor
from fittrack.tracker.service import StepCounterService
from fittrack.tracker.store import JsonFileStateStore, StateStore
from fittrack.tracker.sync.client import BackendSyncClient
from fittrack.tracker.sync.scheduler import SyncPolicy

logger = logging.getLogger("fittrack.tracker.runtime")


def configure_logging(settings: Settings | None = None) -> None:
    s = settings or get_settings()
    logging.basicConfig(
        level=s.log_level.upper(),
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


@dataclass
class Tracker:
    """A running tracker for one user."""

    session: AuthSession
    service: StepCounterService
    reconciler: DashboardReconciler
    reader: SensorReader | None

    def status(self) -> TrackerStatus:
        return self.service.status()

    async def run(self, on_view=None) -> None:
        """Run the service, the sensor reader and the dashboard poller until cancelled."""
        await self.service.start()
        tasks = [
            asyncio.create_task(self.service.run(), name="step-service"),
            asyncio.create_task(self.reconciler.run(on_view or log_view), name="dashboard"),
        ]
        if self.reader is not None:
            tasks.append(asyncio.create_task(self.reader.run(), name="sensor-reader"))
        try:
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)


def build_tracker(
    session: AuthSession,
    counter_sensor: StepSensor | None = None,
    detector_sensor: StepSensor | None = None,
    store: StateStore | None = None,
    settings: Settings | None = None,
    config: TrackerConfig | None = None,
    http_client: httpx.AsyncClient | None = None,
    clock: Clock | None = None,
) -> Tracker:
    """Assemble a tracker for ``session``.

    Args:
        session:         Signed-in (or anonymous) user.
        counter_sensor:  Cumulative step counter, if the device has one.
        detector_sensor: Per-step detector, used when there is no counter.
        store:           State store; defaults to JSON files under ``settings.state_dir``.
        settings:        Environment settings.
        config:          Tracker tuning; defaults to the bundled YAML.
        http_client:     Shared httpx client (tests inject an ASGI or mock transport).
        clock:           Local time source.
    """
    s = settings or get_settings()
    cfg = config or get_tracker_config()

    sensor = choose_sensor(counter_sensor, detector_sensor)
    mode = sensor.kind if sensor is not None else SensorKind.DETECTOR

    accumulator = DailyStepAccumulator(
        session.user_id,
        store if store is not None else JsonFileStateStore(s.state_dir),
        mode,
        clock=clock,
    )
    client = BackendSyncClient(
        session,
        s.fitness_api_url,
        http_client=http_client,
        timeout=s.request_timeout_seconds,
        clock=clock,
    )
    service = StepCounterService(
        accumulator,
        client,
        SyncPolicy.from_config(cfg.sync),
        sensor_kind=sensor.kind if sensor is not None else None,
        clock=clock,
    )
    reconciler = DashboardReconciler(
        service.snapshot, client, service.sync_now, config=cfg.dashboard, clock=clock
    )
    reader = SensorReader(sensor, service.queue, clock=clock) if sensor is not None else None

    logger.info(
        "Tracker ready for %s (sensor=%s)",
        session.email or session.user_id,
        sensor.kind.value if sensor is not None else "none",
    )
    return Tracker(session=session, service=service, reconciler=reconciler, reader=reader)


def log_view(view: DashboardView) -> None:
    today = view.today
    logger.debug(
        "%s: %d steps, %d kcal, %.2f km, %d active min%s",
        today.date,
        today.steps,
        today.calories,
        today.distance,
        today.active_minutes,
        "" if view.backend_connected else " (backend not connected)",
    )
