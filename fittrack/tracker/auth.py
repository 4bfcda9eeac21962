"""Authenticated identity handed to the tracker at session start.

Token issuance and validation belong to the auth service; the tracker only
carries the opaque bearer token and the user id it was issued for.  The
session is passed explicitly into every component that needs it, so a user
switch means building a new tracker rather than mutating shared state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

ANONYMOUS_USER_ID = "anonymous"


@dataclass(frozen=True)
class AuthSession:
    """A signed-in (or anonymous) user.

    Attributes:
        user_id:        Backend user id; scopes local state and remote records.
        token_provider: Returns the current bearer token, or None when signed out.
        email:          For log messages only.
    """

    user_id: str
    token_provider: Callable[[], str | None]
    email: str | None = None

    @classmethod
    def with_token(cls, user_id: str, token: str | None, email: str | None = None) -> "AuthSession":
        return cls(user_id=user_id, token_provider=lambda: token, email=email)

    @classmethod
    def anonymous(cls) -> "AuthSession":
        return cls(user_id=ANONYMOUS_USER_ID, token_provider=lambda: None)

    @property
    def token(self) -> str | None:
        return self.token_provider()

    @property
    def is_authenticated(self) -> bool:
        return self.user_id != ANONYMOUS_USER_ID and bool(self.token)
