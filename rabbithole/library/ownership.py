"""
Ownership guard.

A child's owner is the owner of its parent item. Every lookup here is a
single query filtered by the caller, so "absent" and "owned by someone else"
cannot be told apart.
"""

from __future__ import annotations

from rabbithole.library.models import DrawingRecord, HighlightRecord, ItemRecord, NoteRecord
from rabbithole.library.repository import (
    DrawingRepository,
    HighlightRepository,
    ItemRepository,
    NoteRepository,
)


def verify_item_ownership(item_id: str, user_id: str) -> ItemRecord | None:
    return ItemRepository.get_for_user(item_id, user_id)


def find_owned_note(note_id: str, user_id: str) -> NoteRecord | None:
    return NoteRepository.find_owned(note_id, user_id)


def find_owned_highlight(highlight_id: str, user_id: str) -> HighlightRecord | None:
    return HighlightRepository.find_owned(highlight_id, user_id)


def find_owned_drawing(drawing_id: str, user_id: str) -> DrawingRecord | None:
    return DrawingRepository.find_owned(drawing_id, user_id)
