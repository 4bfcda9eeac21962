"""FitTrack fitness service — FastAPI application entry point.

Serves the REST contract the step tracker syncs against.

Run locally:
    FITTRACK_JWT_SECRET=dev uvicorn fittrack.main:create_app --factory --reload --port 3002
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from fittrack.config import Settings, get_settings
from fittrack.middleware.bearer_auth import BearerAuthMiddleware
from fittrack.routers import fitness, health
from fittrack.services.fitness_store import FitnessStore

logger = logging.getLogger("fittrack")


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


# ---------- App factory ----------

def create_app(settings: Settings | None = None, store: FitnessStore | None = None) -> FastAPI:
    s = settings or get_settings()
    configure_logging(s)
    if not s.jwt_secret:
        raise RuntimeError("FITTRACK_JWT_SECRET must be set to run the fitness service")

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Startup / shutdown hooks."""
        logger.info("Starting %s fitness service v%s [%s]", s.app_name, s.app_version, s.environment)
        yield
        logger.info("%s fitness service shut down", s.app_name)

    app = FastAPI(
        title="FitTrack Fitness Service",
        description="Per-day step, calorie and distance records for FitTrack users.",
        version=s.app_version,
        lifespan=lifespan,
    )
    app.state.fitness_store = store if store is not None else FitnessStore()

    # Override the cached settings for dependencies when a custom instance is supplied
    app.dependency_overrides[get_settings] = lambda: s

    app.add_middleware(BearerAuthMiddleware, settings=s)

    # ---------- Routes ----------
    app.include_router(health.router)
    app.include_router(fitness.router)

    return app

