"""Tests for derived metrics estimation."""

from __future__ import annotations

import pytest

from fittrack.tracker.base import DailyStats
from fittrack.tracker.estimator import estimate, estimate_calories
from fittrack.tracker.tests.conftest import TEST_DATE


class TestEstimate:
    def test_ten_thousand_steps(self) -> None:
        metrics = estimate(10000)
        assert metrics.calories == 400
        assert metrics.distance_km == pytest.approx(7.62)
        assert metrics.active_minutes == 100

    def test_zero_steps(self) -> None:
        metrics = estimate(0)
        assert (metrics.calories, metrics.distance_km, metrics.active_minutes) == (0, 0.0, 0)

    def test_calories_are_floored(self) -> None:
        # 49 * 0.04 = 1.96
        assert estimate_calories(49) == 1
        assert estimate_calories(25) == 1
        assert estimate_calories(24) == 0

    def test_active_minutes_are_floored(self) -> None:
        assert estimate(199).active_minutes == 1

    def test_negative_steps_rejected(self) -> None:
        with pytest.raises(ValueError):
            estimate(-1)

    def test_deterministic(self) -> None:
        assert estimate(4321) == estimate(4321)


class TestDailyStatsFromSteps:
    def test_derives_all_metrics(self) -> None:
        stats = DailyStats.from_steps(TEST_DATE, 10000)
        assert stats.steps == 10000
        assert stats.calories == 400
        assert stats.distance == pytest.approx(7.62)
        assert stats.active_minutes == 100

    def test_payload_uses_wire_names(self) -> None:
        payload = DailyStats.from_steps(TEST_DATE, 450).to_payload("u1")
        assert payload == {
            "userId": "u1",
            "date": "2026-02-23",
            "steps": 450,
            "calories": 18,
            "distance": pytest.approx(0.3429),
            "activeMinutes": 4,
        }

    def test_from_record_accepts_timestamp_dates(self) -> None:
        stats = DailyStats.from_record(
            {"date": "2026-02-23T00:00:00.000Z", "steps": 300, "calories": 12, "distance": 0.2286, "activeMinutes": 3}
        )
        assert stats.date == TEST_DATE
        assert stats.steps == 300
        assert stats.active_minutes == 3
