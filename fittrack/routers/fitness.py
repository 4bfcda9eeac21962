"""Fitness data endpoints: daily log upsert, today, range stats, all-time summary."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from fastapi import APIRouter, HTTPException

from fittrack.dependencies import CurrentUser, Store
from fittrack.models.fitness import (
    FitnessLogCreate,
    FitnessLogResponse,
    FitnessRecord,
    FitnessStats,
    FitnessSummary,
)

router = APIRouter(prefix="/fitness", tags=["fitness"])
logger = logging.getLogger("fittrack.fitness")


@router.get("/today/{user_id}", response_model=FitnessRecord)
async def get_today(user_id: str, user: CurrentUser, store: Store) -> Any:
    today = date.today()
    record = await store.get(user_id, today)
    return record or FitnessRecord(user_id=user_id, date=today)


@router.get("/stats/{user_id}/{range_}", response_model=FitnessStats)
async def get_stats(user_id: str, range_: str, user: CurrentUser, store: Store) -> Any:
    return await store.stats(user_id, range_, date.today())


@router.post("/log", response_model=FitnessLogResponse, status_code=201)
async def log_fitness(body: FitnessLogCreate, user: CurrentUser, store: Store) -> Any:
    if not body.user_id or body.date is None:
        raise HTTPException(status_code=400, detail="userId and date required")

    record, created = await store.upsert(
        body.user_id,
        body.date,
        body.model_dump(exclude={"user_id", "date"}, exclude_none=True),
    )
    logger.info(
        "%s %s for %s: %d steps",
        "Logged" if created else "Updated",
        record.date,
        record.user_id,
        record.steps,
    )
    return FitnessLogResponse(success=True, data=record)


@router.get("/summary/{user_id}", response_model=FitnessSummary)
async def get_summary(user_id: str, user: CurrentUser, store: Store) -> Any:
    return await store.summary(user_id)
