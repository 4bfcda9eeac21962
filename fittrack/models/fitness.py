"""Pydantic models for the fitness service: daily logs, stats, summary."""

from __future__ import annotations

import datetime as dt

from pydantic import Field, field_validator

from fittrack.models.base import FitTrackBase, utc_now


class FitnessLogCreate(FitTrackBase):
    """Body of ``POST /fitness/log``.

    ``date`` may be an ISO date or a full timestamp; only the calendar day is
    used as the upsert key.  Omitted metric fields keep their stored value.
    """

    user_id: str | None = None
    date: dt.date | None = None
    steps: int | None = Field(default=None, ge=0)
    calories: int | None = Field(default=None, ge=0)
    distance: float | None = Field(default=None, ge=0)
    active_minutes: int | None = Field(default=None, ge=0, le=1440)
    heart_rate: int | None = Field(default=None, ge=20, le=300)
    notes: str | None = None

    @field_validator("date", mode="before")
    @classmethod
    def _calendar_day(cls, value: object) -> object:
        if isinstance(value, dt.datetime):
            return value.date()
        if isinstance(value, str) and len(value) > 10:
            return value[:10]
        return value


class FitnessRecord(FitTrackBase):
    """One stored day for one user."""

    user_id: str
    date: dt.date
    steps: int = 0
    calories: int = 0
    distance: float = 0.0
    active_minutes: int = 0
    heart_rate: int | None = None
    notes: str | None = None
    created_at: dt.datetime = Field(default_factory=utc_now)
    updated_at: dt.datetime = Field(default_factory=utc_now)


class FitnessLogResponse(FitTrackBase):
    success: bool = True
    data: FitnessRecord


class FitnessStats(FitTrackBase):
    """History for a range plus aggregates over the returned days."""

    period: str
    total_steps: int = 0
    total_calories: int = 0
    total_distance: float = 0.0
    total_active_minutes: int = 0
    average_steps: int = 0
    average_calories: int = 0
    data: list[FitnessRecord] = Field(default_factory=list)


class FitnessSummary(FitTrackBase):
    total_entries: int = 0
    total_steps: int = 0
    total_calories: int = 0
    total_distance: float = 0.0
    total_active_minutes: int = 0
    last_update: dt.datetime | None = None
