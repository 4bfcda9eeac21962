"""JWT bearer verification middleware for FastAPI.

Validates the Bearer token on every request except public routes and sets
``request.state.auth`` for route handlers that consume it through
``get_current_user``.

Status codes follow the fitness service contract:
    401 — Authorization header missing or not a Bearer token
    403 — token present but invalid or expired
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt as pyjwt
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from fittrack.config import Settings, get_settings
from fittrack.dependencies import AuthContext

logger = logging.getLogger("fittrack.auth")

# Paths that do not require authentication
PUBLIC_PATHS: set[str] = {
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
}


def _is_public(path: str) -> bool:
    return path in PUBLIC_PATHS or path.startswith("/docs") or path.startswith("/redoc")


def _json_error(detail: str, status_code: int) -> Response:
    return Response(
        content=f'{{"detail":"{detail}"}}',
        status_code=status_code,
        media_type="application/json",
    )


class BearerAuthMiddleware(BaseHTTPMiddleware):
    """Verify HS256-signed JWTs and populate request.state.auth."""

    def __init__(self, app: Any, settings: Settings | None = None) -> None:
        super().__init__(app)
        self._settings = settings or get_settings()
        if not self._settings.jwt_secret:
            raise RuntimeError("jwt_secret is not configured")

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if _is_public(request.url.path) or request.method == "OPTIONS":
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return _json_error("No token provided", 401)

        token = auth_header.removeprefix("Bearer ").strip()
        if not token:
            return _json_error("No token provided", 401)

        try:
            payload = pyjwt.decode(
                token,
                self._settings.jwt_secret,
                algorithms=[self._settings.jwt_algorithm],
            )
        except pyjwt.ExpiredSignatureError:
            return _json_error("Token expired", 403)
        except pyjwt.InvalidTokenError as exc:
            logger.warning("JWT validation failed: %s", exc)
            return _json_error("Invalid token", 403)

        request.state.auth = AuthContext(
            user_id=str(payload.get("sub") or payload.get("userId") or ""),
            email=payload.get("email"),
        )
        return await call_next(request)


def issue_token(
    user_id: str,
    settings: Settings | None = None,
    email: str | None = None,
    expires_in: int = 3600,
) -> str:
    """Sign a token the middleware accepts.  Used by tests and local tooling."""
    s = settings or get_settings()
    if not s.jwt_secret:
        raise RuntimeError("jwt_secret is not configured")
    now = datetime.now(timezone.utc)
    claims = {"sub": user_id, "iat": now, "exp": now + timedelta(seconds=expires_in)}
    if email:
        claims["email"] = email
    return pyjwt.encode(claims, s.jwt_secret, algorithm=s.jwt_algorithm)
