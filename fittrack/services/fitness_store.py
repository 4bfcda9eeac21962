"""In-process store for daily fitness records.

Records are keyed by ``(user_id, calendar day)``; that key is the upsert
conflict target, so logging the same day twice updates one record instead of
creating a second.  Persistence schema is out of scope for this service: the
store keeps records in memory for the lifetime of the process.

Dedup key:
    fitness record: (user_id, date) — one record per user per local day
"""

from __future__ import annotations

import asyncio
import calendar
import math
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable

from fittrack.models.fitness import FitnessRecord, FitnessStats, FitnessSummary

logger = logging.getLogger("fittrack.db")

STATS_RANGES = ("week", "month", "year")

#: Fields a log request may overwrite.
UPDATABLE_FIELDS = ("steps", "calories", "distance", "active_minutes", "heart_rate", "notes")


def record_key(user_id: str, day: date) -> str:
    """Dedup key matching the one-record-per-user-per-day constraint."""
    return f"{user_id}:{day.isoformat()}"


def _months_back(day: date, months: int) -> date:
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def range_start(today: date, range_: str) -> date:
    """First day included in a stats range.  Unknown ranges fall back to a week."""
    if range_ == "month":
        return _months_back(today, 1)
    if range_ == "year":
        return _months_back(today, 12)
    return today - timedelta(days=7)


class FitnessStore:
    """Upsert-by-day store for fitness records.

    Usage::

        store = FitnessStore()
        record, created = await store.upsert("user-1", date(2026, 10, 17), {"steps": 450})
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._records: dict[str, FitnessRecord] = {}
        self._lock = asyncio.Lock()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def __len__(self) -> int:
        return len(self._records)

    async def upsert(
        self, user_id: str, day: date, fields: dict[str, Any]
    ) -> tuple[FitnessRecord, bool]:
        """Create or update the record for ``(user_id, day)``.

        Fields that are absent or None keep their stored value.

        Returns:
            (record, created) where ``created`` is True for a new record.
        """
        updates = {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS and v is not None}
        key = record_key(user_id, day)
        now = self._clock()

        async with self._lock:
            existing = self._records.get(key)
            if existing is not None:
                record = existing.model_copy(update={**updates, "updated_at": now})
                created = False
            else:
                record = FitnessRecord(
                    user_id=user_id, date=day, created_at=now, updated_at=now, **updates
                )
                created = True
            self._records[key] = record

        logger.debug(
            "%s fitness record %s (steps=%d)", "Created" if created else "Updated", key, record.steps
        )
        return record.model_copy(), created

    async def get(self, user_id: str, day: date) -> FitnessRecord | None:
        async with self._lock:
            record = self._records.get(record_key(user_id, day))
        return record.model_copy() if record is not None else None

    async def list_for_user(self, user_id: str, since: date | None = None) -> list[FitnessRecord]:
        """Records for ``user_id`` ordered by date ascending, optionally from ``since``."""
        async with self._lock:
            records = [
                r.model_copy()
                for r in self._records.values()
                if r.user_id == user_id and (since is None or r.date >= since)
            ]
        records.sort(key=lambda r: r.date)
        return records

    async def stats(self, user_id: str, range_: str, today: date) -> FitnessStats:
        """History for ``range_`` ending ``today`` with totals and rounded averages."""
        period = range_ if range_ in STATS_RANGES else "week"
        records = await self.list_for_user(user_id, since=range_start(today, period))
        stats = FitnessStats(period=range_, data=records)
        if records:
            stats.total_steps = sum(r.steps for r in records)
            stats.total_calories = sum(r.calories for r in records)
            stats.total_distance = sum(r.distance for r in records)
            stats.total_active_minutes = sum(r.active_minutes for r in records)
            stats.average_steps = _round_half_up(stats.total_steps / len(records))
            stats.average_calories = _round_half_up(stats.total_calories / len(records))
        return stats

    async def summary(self, user_id: str) -> FitnessSummary:
        """All-time totals; ``last_update`` is the most recent modification."""
        records = await self.list_for_user(user_id)
        summary = FitnessSummary(total_entries=len(records))
        if records:
            summary.total_steps = sum(r.steps for r in records)
            summary.total_calories = sum(r.calories for r in records)
            summary.total_distance = sum(r.distance for r in records)
            summary.total_active_minutes = sum(r.active_minutes for r in records)
            summary.last_update = max(r.updated_at for r in records)
        return summary
