"""FitTrack on-device step tracker.

Turns step sensor readings into a per-day step count, keeps it durable per
user, and keeps the fitness service in sync under flaky connectivity.

Subpackages:
    sync/ — sync trigger rules, single-flight runner, fitness service client

Core modules:
    base           — state, event and stats models
    estimator      — calories / distance / active minutes from steps
    sensors        — step sensor abstraction and event reader
    store          — per-user persisted state
    accumulator    — daily step accumulation and day rollover
    service        — event loop tying accumulator, policy and client together
    reconcile      — merged dashboard view and auto/manual sync
    runtime        — composition root
    config_loader  — tracker_config.yaml loading
"""

from fittrack.tracker.accumulator import DailyStepAccumulator
from fittrack.tracker.auth import AuthSession
from fittrack.tracker.base import DailyStats, DailyStepState, SensorEvent, SensorKind
from fittrack.tracker.config_loader import TrackerConfig, get_tracker_config
from fittrack.tracker.estimator import estimate
from fittrack.tracker.service import StepCounterService

__all__ = [
    "AuthSession",
    "DailyStats",
    "DailyStepAccumulator",
    "DailyStepState",
    "SensorEvent",
    "SensorKind",
    "StepCounterService",
    "TrackerConfig",
    "estimate",
    "get_tracker_config",
]
