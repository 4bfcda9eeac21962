"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, Request

from fittrack.config import Settings, get_settings
from fittrack.services.fitness_store import FitnessStore


@dataclass(frozen=True)
class AuthContext:
    """Authenticated caller extracted from the bearer JWT."""

    user_id: str  # token subject
    email: str | None = None


async def get_current_user(request: Request) -> AuthContext:
    """Return the caller set by ``BearerAuthMiddleware`` on ``request.state.auth``."""
    auth: AuthContext | None = getattr(request.state, "auth", None)
    if auth is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return auth


def get_store(request: Request) -> FitnessStore:
    return request.app.state.fitness_store


# Annotated shortcuts for route signatures
CurrentUser = Annotated[AuthContext, Depends(get_current_user)]
AppSettings = Annotated[Settings, Depends(get_settings)]
Store = Annotated[FitnessStore, Depends(get_store)]
