"""
Caller identity for the Rabbithole API.

The API trusts the network it runs on: the extension sends the user id as a
Bearer token (or, for older clients, in X-User-Id) and any non-empty value
is taken as-is. Put an authenticating proxy in front before exposing it.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import HTTPException, Request, status

from rabbithole.observability.logging import get_logger

logger = get_logger(__name__)

MISSING_IDENTITY = "Missing user identity"


@dataclass
class AuthenticatedUser:
    """The caller, identified by an opaque user id."""

    id: str

    def __str__(self) -> str:
        return f"User({self.id})"


def _extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None

    return parts[1]


def resolve_user_id(request: Request) -> str | None:
    """Bearer token first, then X-User-Id; None when neither carries an id."""
    user_id = _extract_bearer_token(request.headers.get("Authorization"))
    if not user_id:
        user_id = (request.headers.get("x-user-id") or "").strip()
    return user_id or None


def missing_identity_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=MISSING_IDENTITY,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(request: Request) -> AuthenticatedUser:
    """
    FastAPI dependency resolving the caller.

    Usage:
        @router.get("/items/{item_id}")
        def get_item(item_id: str, user: AuthenticatedUser = Depends(get_current_user)):
            ...

    Raises:
        HTTPException: 401 when neither header carries an id
    """
    user_id = resolve_user_id(request)
    if user_id is None:
        raise missing_identity_error()

    return AuthenticatedUser(id=user_id)
