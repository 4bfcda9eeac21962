"""Derived metrics estimated from a step count.

Pure functions, no configuration: the same step count must produce the same
numbers on the device, in sync payloads, and on the dashboard.
"""

from __future__ import annotations

from dataclasses import dataclass

#: Average stride length in metres.
STRIDE_LENGTH_M = 0.762

#: Calories burned per step, expressed as a fraction (4 / 100 = 0.04 kcal).
_CALORIES_NUM = 4
_CALORIES_DEN = 100

#: Walking cadence used for active minutes.
STEPS_PER_ACTIVE_MINUTE = 100


@dataclass(frozen=True)
class DerivedMetrics:
    calories: int
    distance_km: float
    active_minutes: int


def estimate_calories(steps: int) -> int:
    """floor(steps * 0.04), computed in integers to avoid float truncation."""
    return steps * _CALORIES_NUM // _CALORIES_DEN


def estimate_distance_km(steps: int) -> float:
    return steps * STRIDE_LENGTH_M / 1000


def estimate_active_minutes(steps: int) -> int:
    return steps // STEPS_PER_ACTIVE_MINUTE


def estimate(steps: int) -> DerivedMetrics:
    """Return calories, distance (km) and active minutes for ``steps``.

    Raises:
        ValueError: If steps is negative.
    """
    if steps < 0:
        raise ValueError(f"steps must be >= 0, got {steps}")
    return DerivedMetrics(
        calories=estimate_calories(steps),
        distance_km=estimate_distance_km(steps),
        active_minutes=estimate_active_minutes(steps),
    )
