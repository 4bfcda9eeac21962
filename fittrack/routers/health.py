"""Health check endpoint — public, no auth required."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter

from fittrack.dependencies import AppSettings, Store

router = APIRouter(tags=["system"])


@router.get("/health")
async def health_check(settings: AppSettings, store: Store) -> dict:
    """Liveness check. Returns 200 if the service process is up."""
    return {
        "status": "Fitness Service OK",
        "version": settings.app_version,
        "environment": settings.environment,
        "records": len(store),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
