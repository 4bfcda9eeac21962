"""Core data models for the on-device step tracker.

``DailyStepState`` is the only mutable record in the pipeline and is owned by
the accumulator.  Everything else (``DailyStats``, ``SensorEvent``,
``StepUpdate``) is a value object passed between components.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Callable

from fittrack.tracker.estimator import estimate

logger = logging.getLogger("fittrack.tracker")


class SensorKind(str, enum.Enum):
    """Platform step sensor flavours.

    COUNTER reports a cumulative count since device boot.
    DETECTOR fires one event per detected step.
    """

    COUNTER = "counter"
    DETECTOR = "detector"


# ---------------------------------------------------------------------------
# Sensor events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SensorEvent:
    """One raw reading from a step sensor.

    Attributes:
        kind:        Which sensor produced the reading.
        total_steps: Cumulative steps since boot (COUNTER only).
        received_at: Local wall-clock time the reading was taken.
    """

    kind: SensorKind
    total_steps: int | None = None
    received_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.kind is SensorKind.COUNTER:
            if self.total_steps is None:
                raise ValueError("Counter sensor events must carry total_steps")
            if self.total_steps < 0:
                raise ValueError(f"total_steps must be >= 0, got {self.total_steps}")

    @classmethod
    def counter(cls, total_steps: int, received_at: datetime | None = None) -> "SensorEvent":
        return cls(SensorKind.COUNTER, total_steps=total_steps, received_at=received_at)

    @classmethod
    def step(cls, received_at: datetime | None = None) -> "SensorEvent":
        return cls(SensorKind.DETECTOR, received_at=received_at)


# ---------------------------------------------------------------------------
# Persisted accumulator state
# ---------------------------------------------------------------------------


@dataclass
class DailyStepState:
    """Per-user step state persisted across process restarts.

    Attributes:
        steps_today:                 Steps attributed to ``last_sync_date``.
        initial_sensor_value:        Counter baseline; None until captured.
        last_sync_date:              Local calendar day this state belongs to.
        last_backend_sync_timestamp: Epoch millis of the last successful push, 0 if never.
    """

    steps_today: int = 0
    initial_sensor_value: int | None = None
    last_sync_date: date | None = None
    last_backend_sync_timestamp: int = 0

    @property
    def has_synced(self) -> bool:
        return self.last_backend_sync_timestamp > 0

    def copy(self) -> "DailyStepState":
        return replace(self)

    def to_json(self) -> dict:
        return {
            "stepsToday": self.steps_today,
            "lastSyncDate": self.last_sync_date.isoformat() if self.last_sync_date else None,
            "initialSensorValue": self.initial_sensor_value,
            "lastBackendSyncTimestamp": self.last_backend_sync_timestamp,
        }

    @classmethod
    def from_json(cls, data: dict) -> "DailyStepState":
        state = cls()
        state.steps_today = max(int(data.get("stepsToday") or 0), 0)
        if (initial := data.get("initialSensorValue")) is not None:
            state.initial_sensor_value = int(initial)
        if last := data.get("lastSyncDate"):
            try:
                state.last_sync_date = date.fromisoformat(last)
            except ValueError:
                logger.warning("Ignoring unparseable lastSyncDate %r", last)
        state.last_backend_sync_timestamp = int(data.get("lastBackendSyncTimestamp") or 0)
        return state


@dataclass(frozen=True)
class StepUpdate:
    """Outcome of applying one sensor event.

    Attributes:
        previous:    steps_today before the event (after any rollover reset).
        steps:       steps_today after the event.
        rolled_over: True if the event started a new calendar day.
        rebaselined: True if the counter baseline was (re)captured.
    """

    previous: int
    steps: int
    rolled_over: bool = False
    rebaselined: bool = False

    @property
    def changed(self) -> bool:
        return self.steps != self.previous


# ---------------------------------------------------------------------------
# Daily stats DTO
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DailyStats:
    """One day of activity as exchanged with the backend and shown in the UI.

    ``steps`` is authoritative.  Calories, distance and active minutes are
    always derived from it through ``estimate()``; use ``from_steps`` rather
    than filling them in by hand.
    """

    date: date
    steps: int
    calories: int
    distance: float
    active_minutes: int

    @classmethod
    def from_steps(cls, day: date, steps: int) -> "DailyStats":
        metrics = estimate(steps)
        return cls(
            date=day,
            steps=steps,
            calories=metrics.calories,
            distance=metrics.distance_km,
            active_minutes=metrics.active_minutes,
        )

    def to_payload(self, user_id: str) -> dict:
        """Body for ``POST /fitness/log``."""
        return {
            "userId": user_id,
            "date": self.date.isoformat(),
            "steps": self.steps,
            "calories": self.calories,
            "distance": self.distance,
            "activeMinutes": self.active_minutes,
        }

    @classmethod
    def from_record(cls, record: dict) -> "DailyStats":
        """Build from a stored fitness record as returned by the backend.

        Records carry either an ISO date or a full timestamp in ``date``;
        only the calendar day is kept.
        """
        raw_date = str(record.get("date", ""))[:10]
        return cls(
            date=date.fromisoformat(raw_date),
            steps=int(record.get("steps") or 0),
            calories=int(record.get("calories") or 0),
            distance=float(record.get("distance") or 0.0),
            active_minutes=int(record.get("activeMinutes") or 0),
        )


@dataclass
class TrackerStatus:
    """Read-only snapshot exposed to the UI layer."""

    user_id: str
    sensor_kind: SensorKind | None
    steps_today: int
    day: date | None
    last_backend_sync_timestamp: int
    sync_in_flight: bool

    @property
    def sensor_available(self) -> bool:
        return self.sensor_kind is not None


# ---------------------------------------------------------------------------
# Clock helpers
# ---------------------------------------------------------------------------

#: Returns the current local wall-clock time.  Injected for tests.
Clock = Callable[[], datetime]


def local_now() -> datetime:
    return datetime.now()


def epoch_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)
