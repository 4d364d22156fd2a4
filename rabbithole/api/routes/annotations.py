"""Note, highlight and drawing endpoints.

Writes go through the parent item's ownership check; deletes resolve the
child with a single join filtered by the caller.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from rabbithole.api.middleware.user_auth import AuthenticatedUser, get_current_user
from rabbithole.api.models import DrawingRequest, HighlightRequest, NoteRequest
from rabbithole.library.ownership import (
    find_owned_drawing,
    find_owned_highlight,
    find_owned_note,
    verify_item_ownership,
)
from rabbithole.library.repository import (
    DrawingRepository,
    HighlightRepository,
    NoteRepository,
)
from rabbithole.observability.logging import get_logger

router = APIRouter(tags=["annotations"])
logger = get_logger(__name__)


def _require_item(item_id: str, user_id: str) -> None:
    try:
        item = verify_item_ownership(item_id, user_id)
    except Exception as e:
        logger.error("Failed to verify ownership of item %s: %s", item_id, e)
        raise HTTPException(status_code=500, detail="Failed to load item") from None
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")


def _upsert(repository, kind: str, item_id: str, entity_id, values, revision) -> dict[str, Any]:
    try:
        record = repository.upsert(item_id, values, entity_id=entity_id, revision=revision)
    except Exception as e:
        logger.error("Failed to upsert %s for item %s: %s", kind, item_id, e)
        raise HTTPException(status_code=500, detail=f"Failed to save {kind}") from None

    if record is None:
        # The id is taken by an annotation on another item
        raise HTTPException(status_code=404, detail=f"{kind.capitalize()} not found")

    return {kind: record.to_response()}


def _delete(repository, finder, kind: str, entity_id: str, user_id: str) -> dict[str, Any]:
    not_found = f"{kind.capitalize()} not found"
    try:
        owned = finder(entity_id, user_id)
    except Exception as e:
        logger.error("Failed to look up %s %s: %s", kind, entity_id, e)
        raise HTTPException(status_code=500, detail=f"Failed to delete {kind}") from None
    if owned is None:
        raise HTTPException(status_code=404, detail=not_found)

    try:
        repository.delete(entity_id)
    except Exception as e:
        logger.error("Failed to delete %s %s: %s", kind, entity_id, e)
        raise HTTPException(status_code=500, detail=f"Failed to delete {kind}") from None

    return {"success": True}


@router.post("/items/{item_id}/notes")
def upsert_note(
    item_id: str,
    body: NoteRequest,
    user: AuthenticatedUser = Depends(get_current_user),
) -> dict[str, Any]:
    _require_item(item_id, user.id)
    values = {
        "content": body.content,
        "position_json": body.position,
        "rects_json": body.rects,
    }
    return _upsert(NoteRepository, "note", item_id, body.id, values, body.revision)


@router.post("/items/{item_id}/highlights")
def upsert_highlight(
    item_id: str,
    body: HighlightRequest,
    user: AuthenticatedUser = Depends(get_current_user),
) -> dict[str, Any]:
    _require_item(item_id, user.id)
    values = {"text": body.text, "rects_json": body.rects}
    return _upsert(HighlightRepository, "highlight", item_id, body.id, values, body.revision)


@router.post("/items/{item_id}/drawings")
def upsert_drawing(
    item_id: str,
    body: DrawingRequest,
    user: AuthenticatedUser = Depends(get_current_user),
) -> dict[str, Any]:
    _require_item(item_id, user.id)
    values = {"blob_ref": body.blob_ref, "bounds_json": body.bounds}
    return _upsert(DrawingRepository, "drawing", item_id, body.id, values, body.revision)


@router.delete("/notes/{note_id}")
def delete_note(note_id: str, user: AuthenticatedUser = Depends(get_current_user)) -> dict[str, Any]:
    return _delete(NoteRepository, find_owned_note, "note", note_id, user.id)


@router.delete("/highlights/{highlight_id}")
def delete_highlight(
    highlight_id: str, user: AuthenticatedUser = Depends(get_current_user)
) -> dict[str, Any]:
    return _delete(HighlightRepository, find_owned_highlight, "highlight", highlight_id, user.id)


@router.delete("/drawings/{drawing_id}")
def delete_drawing(
    drawing_id: str, user: AuthenticatedUser = Depends(get_current_user)
) -> dict[str, Any]:
    return _delete(DrawingRepository, find_owned_drawing, "drawing", drawing_id, user.id)
