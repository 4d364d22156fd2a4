"""Floating notes created by the engine."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from rabbithole.annotator.geometry import Point, Rect, Viewport, place_note_near_rect
from rabbithole.annotator.host import NOTE_HIGHLIGHT_KEY, NOTE_ID_KEY, NoteElement

HIGHLIGHT_NOTE_HEADER = "Highlight note"
PLAIN_NOTE_HEADER = "Note"
DEFAULT_NOTE_TEXT = "Edit me"
RESTORED_NOTE_POSITION = Point(left=24.0, top=24.0)

# Offset of a new highlight note from its marker before the first placement pass
NEW_NOTE_OFFSET_X = 8.0
NEW_NOTE_OFFSET_Y = -6.0


@dataclass
class FloatingNote:
    """
    A note element plus what is persisted with it.

    position is the screen position the note was created at; it is what the
    store keeps, even after placement passes have moved the element.
    """

    element: NoteElement
    position: Point
    highlight_id: str | None = None
    note_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        self.element.dataset[NOTE_ID_KEY] = self.note_id
        if self.highlight_id is not None:
            self.element.dataset[NOTE_HIGHLIGHT_KEY] = self.highlight_id

    def place_near(self, anchor: Rect, viewport: Viewport) -> Point:
        box = self.element.bounding_rect()
        target = place_note_near_rect(anchor, box.width, box.height, viewport)
        self.element.move_to(target.left, target.top)
        return target
