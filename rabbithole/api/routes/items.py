"""Item endpoints: save a page, read it back with its annotations, rename, delete."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from rabbithole.api.middleware.user_auth import AuthenticatedUser, get_current_user
from rabbithole.api.models import ItemCreateRequest, ItemUpdateRequest
from rabbithole.grouping.heuristic import GroupingService
from rabbithole.library.ownership import verify_item_ownership
from rabbithole.library.repository import GroupRepository, ItemRepository
from rabbithole.observability.logging import get_logger
from rabbithole.observability.telemetry import counter
from rabbithole.utils.redaction import redact

router = APIRouter(tags=["items"])
logger = get_logger(__name__)

ITEM_NOT_FOUND = "Item not found"


def get_grouping_service() -> GroupingService:
    """Dependency hook; tests override it with a service holding a fake model."""
    return GroupingService()


def _owned_item_or_404(item_id: str, user_id: str):
    try:
        item = verify_item_ownership(item_id, user_id)
    except Exception as e:
        logger.error("Failed to look up item %s: %s", item_id, e)
        raise HTTPException(status_code=500, detail="Failed to load item") from None
    if item is None:
        raise HTTPException(status_code=404, detail=ITEM_NOT_FOUND)
    return item


@router.post("/items")
def create_item(
    body: ItemCreateRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    grouping: GroupingService = Depends(get_grouping_service),
) -> dict[str, Any]:
    """
    Save a page (upsert on user + URL).

    An item that already has a group keeps it; otherwise the grouping
    heuristic picks one. The chosen group's updated_at is bumped.
    """
    try:
        existing = ItemRepository.get_by_url(user.id, body.page_url)
    except Exception as e:
        logger.error("Failed to look up existing item for %s: %s", redact(body.page_url), e)
        existing = None

    group_id = grouping.resolve_group(user.id, body.page_url, body.title, existing)

    try:
        item = ItemRepository.upsert(user.id, body.page_url, body.title, group_id)
    except Exception as e:
        logger.error("Failed to upsert item: %s", e)
        raise HTTPException(status_code=500, detail="Failed to save item") from None

    if group_id:
        try:
            GroupRepository.touch(group_id, user.id)
        except Exception as e:
            logger.error("Failed to bump group timestamp for %s: %s", group_id, e)

    counter("api.items.saved")
    return {"item": item.to_response()}


# Declared before /items/{item_id} so "by-url" is not taken for an id
@router.get("/items/by-url")
def get_item_by_url(
    url: str | None = Query(default=None),
    user: AuthenticatedUser = Depends(get_current_user),
) -> dict[str, Any]:
    """Item plus notes, highlights and drawings for an exact page URL."""
    if not url:
        raise HTTPException(status_code=400, detail="Missing url param")

    try:
        item = ItemRepository.get_by_url(user.id, url)
    except Exception as e:
        logger.error("Failed to fetch item by url: %s", e)
        raise HTTPException(status_code=500, detail="Failed to load item") from None

    if item is None:
        raise HTTPException(status_code=404, detail=ITEM_NOT_FOUND)

    try:
        bundle = ItemRepository.load_bundle(item)
    except Exception as e:
        logger.error("Failed to load relations for item %s: %s", item.id, e)
        raise HTTPException(status_code=500, detail="Failed to load item relations") from None

    return bundle.to_response()


@router.get("/items/{item_id}")
def get_item(
    item_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
) -> dict[str, Any]:
    item = _owned_item_or_404(item_id, user.id)

    try:
        bundle = ItemRepository.load_bundle(item)
    except Exception as e:
        logger.error("Failed to load relations for item %s: %s", item_id, e)
        raise HTTPException(status_code=500, detail="Failed to load item") from None

    return bundle.to_response()


@router.patch("/items/{item_id}")
def update_item(
    item_id: str,
    body: ItemUpdateRequest,
    user: AuthenticatedUser = Depends(get_current_user),
) -> dict[str, Any]:
    """Replace the title; an absent title clears it."""
    _owned_item_or_404(item_id, user.id)

    try:
        item = ItemRepository.update_title(item_id, user.id, body.title)
    except Exception as e:
        logger.error("Failed to update item %s: %s", item_id, e)
        raise HTTPException(status_code=500, detail="Failed to update item") from None

    if item is None:
        raise HTTPException(status_code=404, detail=ITEM_NOT_FOUND)

    return {"item": item.to_response()}


@router.delete("/items/{item_id}")
def delete_item(
    item_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
) -> dict[str, Any]:
    _owned_item_or_404(item_id, user.id)

    try:
        deleted = ItemRepository.delete(item_id, user.id)
    except Exception as e:
        logger.error("Failed to delete item %s: %s", item_id, e)
        raise HTTPException(status_code=500, detail="Failed to delete item") from None

    if not deleted:
        raise HTTPException(status_code=404, detail=ITEM_NOT_FOUND)

    return {"success": True}
