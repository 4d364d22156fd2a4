"""Group listing for the home view."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from rabbithole.api.middleware.user_auth import AuthenticatedUser, get_current_user
from rabbithole.config import API_GROUPS_LIMIT
from rabbithole.library.repository import GroupRepository
from rabbithole.observability.logging import get_logger

router = APIRouter(tags=["groups"])
logger = get_logger(__name__)


@router.get("/groups")
def list_groups(user: AuthenticatedUser = Depends(get_current_user)) -> dict[str, Any]:
    """Most recently updated groups (up to 50), each with its items newest first."""
    try:
        groups = GroupRepository.list_with_items(user.id, limit=API_GROUPS_LIMIT)
    except Exception as e:
        logger.error("Failed to list groups for user %s: %s", user.id, e)
        raise HTTPException(status_code=500, detail="Failed to load groups") from None

    return {"groups": [group.to_response() for group in groups]}
