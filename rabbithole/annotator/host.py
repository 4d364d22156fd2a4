"""
Protocols for the page the engine runs in.

A browser embedding implements these over the real DOM; tests use an
in-memory fake. Elements must support weak references.
"""

from __future__ import annotations

from typing import Protocol

from rabbithole.annotator.geometry import Rect, Viewport

HIGHLIGHT_ID_KEY = "annotatorHighlightId"
NOTE_HIGHLIGHT_KEY = "highlightId"
NOTE_ID_KEY = "noteId"


class Element(Protocol):
    dataset: dict[str, str]

    def bounding_rect(self) -> Rect:
        """Viewport-relative box."""
        ...

    def remove(self) -> None: ...


class NoteElement(Element, Protocol):
    def text(self) -> str: ...

    def move_to(self, left: float, top: float) -> None: ...


class TextSelection(Protocol):
    @property
    def collapsed(self) -> bool: ...

    def client_rects(self) -> list[Rect]: ...

    def text(self) -> str: ...

    def wrap_in_marker(self, highlight_id: str) -> Element:
        """Surround the range with a marker element tagged with highlight_id."""
        ...

    def clear(self) -> None: ...


class DocumentHost(Protocol):
    @property
    def is_ready(self) -> bool:
        """False while the document is still loading."""
        ...

    @property
    def page_url(self) -> str: ...

    @property
    def page_title(self) -> str | None: ...

    def viewport(self) -> Viewport: ...

    def contains(self, element: Element) -> bool:
        """True while element is attached to the document."""
        ...

    def find_highlight(self, highlight_id: str) -> Element | None:
        """Marker element carrying highlight_id, if one is attached."""
        ...

    def closest_highlight(self, target: Element | None) -> Element | None:
        """The marker target sits in, if any."""
        ...

    def current_selection(self) -> TextSelection | None: ...

    def create_ghost(self, page_rect: Rect) -> Element:
        """Placeholder box drawn at a page-relative rect."""
        ...

    def create_note(self, left: float, top: float, header: str, content: str) -> NoteElement: ...

    def set_ui_visible(self, visible: bool) -> None:
        """Show or hide the overlay canvas and toolbar."""
        ...

    def set_active_tool(self, tool: str) -> None:
        """Reflect the active tool on the toolbar buttons."""
        ...

    def set_pointer_capture(self, enabled: bool) -> None:
        """Let the overlay canvas take pointer events."""
        ...
