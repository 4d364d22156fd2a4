"""
Rectangles, viewport conversions and floating-note placement.

Page-relative rects include the scroll offset, so they stay valid after the
user scrolls; viewport rects are what the host reports for live elements.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from rabbithole.config import NOTE_GAP_PX, NOTE_VIEWPORT_PADDING_PX


@dataclass(frozen=True)
class Rect:
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    def to_dict(self) -> dict[str, float]:
        return {"top": self.top, "left": self.left, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Rect:
        return cls(
            left=float(data["left"]),
            top=float(data["top"]),
            width=float(data["width"]),
            height=float(data["height"]),
        )


@dataclass(frozen=True)
class Point:
    left: float
    top: float

    def to_dict(self) -> dict[str, float]:
        return {"left": self.left, "top": self.top}


@dataclass(frozen=True)
class Viewport:
    """Visible window size plus the document's current scroll offset."""

    width: float
    height: float
    scroll_x: float = 0.0
    scroll_y: float = 0.0


def to_page_rect(rect: Rect, viewport: Viewport) -> Rect:
    return Rect(
        left=rect.left + viewport.scroll_x,
        top=rect.top + viewport.scroll_y,
        width=rect.width,
        height=rect.height,
    )


def to_viewport_rect(rect: Rect, viewport: Viewport) -> Rect:
    return Rect(
        left=rect.left - viewport.scroll_x,
        top=rect.top - viewport.scroll_y,
        width=rect.width,
        height=rect.height,
    )


def parse_rects(raw: Any) -> list[Rect]:
    """Rects from stored JSON; malformed entries are skipped."""
    if not isinstance(raw, list):
        return []

    rects = []
    for entry in raw:
        try:
            rects.append(Rect.from_dict(entry))
        except (KeyError, TypeError, ValueError):
            continue
    return rects


def place_note_near_rect(
    anchor: Rect,
    note_width: float,
    note_height: float,
    viewport: Viewport,
    gap: float = NOTE_GAP_PX,
    padding: float = NOTE_VIEWPORT_PADDING_PX,
) -> Point:
    """
    Viewport position for a note of the given size next to anchor.

    Right of the anchor first. If that runs past the right edge, left of it.
    If that starts inside the left padding, clamp horizontally and drop below
    the anchor. The top is always clamped into the viewport.
    """
    left = anchor.right + gap
    top = anchor.top

    if left + note_width + padding > viewport.width:
        left = anchor.left - gap - note_width

    if left < padding:
        left = min(max(padding, anchor.left + gap), viewport.width - padding - note_width)
        top = anchor.bottom + gap

    top = max(padding, min(top, viewport.height - padding - note_height))

    return Point(left=left, top=top)
