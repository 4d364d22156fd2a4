"""
Annotator session - the state machine behind the in-page overlay.

    unsaved --save--> saved(tool = none | draw | highlight | note)
    saved --unsave / navigation--> unsaved

One session per page load. It owns the highlight registry, the floating
notes, the ink strokes and the persistence queue; nothing is module-global.
Host events (mouse, scroll, messages) are forwarded to the on_* methods.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from enum import Enum
from typing import Any

from rabbithole.annotator.client import AnnotatorApiClient
from rabbithole.annotator.geometry import (
    Point,
    Rect,
    parse_rects,
    to_page_rect,
    to_viewport_rect,
)
from rabbithole.annotator.highlights import HighlightEntry, HighlightRegistry
from rabbithole.annotator.host import (
    HIGHLIGHT_ID_KEY,
    NOTE_ID_KEY,
    DocumentHost,
    Element,
    NoteElement,
)
from rabbithole.annotator.messages import (
    SaveRequest,
    SaveStateChanged,
    UnsaveRequest,
    parse_message,
)
from rabbithole.annotator.notes import (
    DEFAULT_NOTE_TEXT,
    HIGHLIGHT_NOTE_HEADER,
    NEW_NOTE_OFFSET_X,
    NEW_NOTE_OFFSET_Y,
    PLAIN_NOTE_HEADER,
    RESTORED_NOTE_POSITION,
    FloatingNote,
)
from rabbithole.annotator.persistence import PersistQueue
from rabbithole.observability.logging import get_logger
from rabbithole.observability.telemetry import counter
from rabbithole.utils.redaction import redact
from rabbithole.utils.validators import is_uuid

logger = get_logger(__name__)


class Tool(str, Enum):
    NONE = "none"
    DRAW = "draw"
    HIGHLIGHT = "highlight"
    NOTE = "note"


class AnnotatorSession:
    """
    Args:
        host: The page
        client: API client for items and annotations
        report_state: Receives save-state-changed messages for the background
        queue: Persistence queue (a default one is created)
    """

    def __init__(
        self,
        host: DocumentHost,
        client: AnnotatorApiClient,
        report_state: Callable[[dict[str, Any]], None] | None = None,
        queue: PersistQueue | None = None,
    ):
        self.host = host
        self.client = client
        self.queue = queue or PersistQueue()
        self.registry = HighlightRegistry()
        self.notes: list[FloatingNote] = []
        self.strokes: list[list[Point]] = []

        self._report_state = report_state
        self._tool = Tool.NONE
        self._saved = False
        self._item_id: str | None = None
        self._page_url: str | None = None
        self._active_stroke: list[Point] | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def saved(self) -> bool:
        return self._saved

    @property
    def item_id(self) -> str | None:
        return self._item_id

    @property
    def tool(self) -> Tool:
        """Active tool; always NONE while the page is unsaved."""
        return self._tool if self._saved else Tool.NONE

    def handle_message(self, raw: Any) -> None:
        message = parse_message(raw)
        if isinstance(message, SaveRequest):
            self.save(message.url, message.title)
        elif isinstance(message, UnsaveRequest):
            self.unsave()

    def save(self, url: str | None = None, title: str | None = None) -> bool:
        """
        Save the page, reveal the overlay and replay stored annotations.

        saved=True is reported only after the item call succeeded.
        """
        page_url = url or self.host.page_url
        page_title = title if title is not None else self.host.page_title

        try:
            item = self.client.save_item(page_url, page_title)
        except Exception as e:
            counter("annotator.save_failed")
            logger.warning("Failed to save %s: %s", redact(page_url), e)
            self._report(False)
            return False

        self._saved = True
        self._item_id = item["id"]
        self._page_url = page_url
        self._apply_ui()
        self._report(True)

        self._restore(page_url)
        return True

    def unsave(self) -> None:
        """Back to unsaved: tool none, UI hidden, runtime state cleared."""
        self._saved = False
        self._item_id = None
        self._tool = Tool.NONE
        self._active_stroke = None
        self.strokes = []
        for note in self.notes:
            note.element.remove()
        self.notes = []
        self.registry.reset()
        self._apply_ui()
        self._report(False)

    def on_document_loading(self) -> None:
        """The tab navigated; treated exactly like an unsave."""
        self.unsave()

    def on_document_ready(self) -> None:
        if self._saved:
            self._apply_ui()

    def press_tool(self, tool: Tool | str) -> Tool:
        """Toolbar press: select tool, or return to none if it is already active."""
        tool = Tool(tool)
        self._tool = Tool.NONE if tool == self._tool else tool
        if self._tool != Tool.DRAW:
            self._active_stroke = None
        self._apply_ui()
        return self.tool

    def _apply_ui(self) -> None:
        if not self.host.is_ready:
            return
        self.host.set_ui_visible(self._saved)
        self.host.set_active_tool(self.tool.value)
        self.host.set_pointer_capture(self.tool == Tool.DRAW)

    def _report(self, saved: bool) -> None:
        if self._report_state is None:
            return
        try:
            self._report_state(SaveStateChanged(saved=saved).to_wire())
        except Exception as e:
            logger.warning("Failed to report save state: %s", e)

    # ------------------------------------------------------------------
    # Highlights
    # ------------------------------------------------------------------

    def on_mouse_up(self) -> HighlightEntry | None:
        self._active_stroke = None
        if self.tool == Tool.HIGHLIGHT:
            return self.highlight_selection()
        return None

    def highlight_selection(self) -> HighlightEntry | None:
        """Wrap the current selection in a marker and queue its persistence."""
        if self._item_id is None:
            return None

        selection = self.host.current_selection()
        if selection is None or selection.collapsed:
            return None

        viewport = self.host.viewport()
        rects = [to_page_rect(rect, viewport) for rect in selection.client_rects()]
        text = selection.text()

        client_id = self.registry.next_client_id()
        try:
            marker = selection.wrap_in_marker(client_id)
        except Exception as e:
            # Ranges crossing element boundaries cannot be wrapped; ghosts stand in
            logger.debug("Could not wrap selection for highlight %s: %s", client_id, e)
            marker = None
        selection.clear()

        entry = HighlightEntry(id=client_id, rects=rects)
        entry.attach_marker(marker)
        self.registry.add(entry)
        self.refresh()

        self._queue_highlight(entry, text)
        counter("annotator.highlights_created")
        return entry

    def _queue_highlight(self, entry: HighlightEntry, text: str | None) -> None:
        item_id = self._item_id
        client_id = entry.id
        if entry.persist_id is None:
            entry.persist_id = entry.id if is_uuid(entry.id) else str(uuid.uuid4())
        persist_id = entry.persist_id
        rects = [rect.to_dict() for rect in entry.rects]

        def call(revision: int) -> dict[str, Any]:
            return self.client.save_highlight(
                item_id, highlight_id=persist_id, text=text, rects=rects, revision=revision
            )

        def on_success(record: dict[str, Any]) -> None:
            saved_id = record.get("id") if record else None
            if saved_id:
                self.registry.rename(client_id, saved_id, self.host)

        self.queue.submit(f"highlight {client_id}", call, on_success)

    def restore_highlight(self, highlight_id: str, rects: list[Rect]) -> HighlightEntry:
        """Replay a stored highlight; shown as ghosts until a marker is found."""
        entry = self.registry.get_or_create(highlight_id)
        entry.rects = rects
        entry.persist_id = highlight_id
        self.refresh()
        return entry

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def on_double_click(self, target: Element | None) -> FloatingNote | None:
        if self.tool != Tool.NOTE:
            return None
        marker = self.host.closest_highlight(target)
        if marker is None:
            return None
        return self.add_note_for_highlight(marker)

    def add_note_for_highlight(self, marker: Element) -> FloatingNote | None:
        highlight_id = marker.dataset.get(HIGHLIGHT_ID_KEY)
        if not highlight_id:
            return None

        box = marker.bounding_rect()
        note = self._create_note(
            Point(left=box.right + NEW_NOTE_OFFSET_X, top=box.top + NEW_NOTE_OFFSET_Y),
            header=HIGHLIGHT_NOTE_HEADER,
            content=DEFAULT_NOTE_TEXT,
            highlight_id=highlight_id,
        )

        entry = self.registry.get_or_create(highlight_id)
        entry.attach_marker(marker)
        entry.note = note
        self._position_note(entry)
        return note

    def restore_note(
        self, note_id: str, content: str | None, position: dict[str, Any] | None
    ) -> FloatingNote:
        position = position if isinstance(position, dict) else {}
        left = position.get("left")
        top = position.get("top")
        at = Point(
            left=float(left) if isinstance(left, int | float) else RESTORED_NOTE_POSITION.left,
            top=float(top) if isinstance(top, int | float) else RESTORED_NOTE_POSITION.top,
        )
        note = self._create_note(
            at,
            header=PLAIN_NOTE_HEADER,
            content=content if content is not None else DEFAULT_NOTE_TEXT,
            note_id=note_id,
        )
        return note

    def _create_note(
        self,
        at: Point,
        header: str,
        content: str,
        highlight_id: str | None = None,
        note_id: str | None = None,
    ) -> FloatingNote:
        element = self.host.create_note(at.left, at.top, header, content)
        if note_id is not None:
            note = FloatingNote(element, at, highlight_id=highlight_id, note_id=note_id)
        else:
            note = FloatingNote(element, at, highlight_id=highlight_id)
        self.notes.append(note)
        return note

    def on_note_blur(self, element: NoteElement) -> int | None:
        """
        Queue persistence of the note's text, anchor rects and position.

        Returns:
            The revision queued, or None if element is not one of ours
        """
        note = next((n for n in self.notes if n.element is element), None)
        if note is None or self._item_id is None:
            return None

        entry = self.registry.get(note.highlight_id) if note.highlight_id else None
        rects = [rect.to_dict() for rect in entry.rects] if entry is not None else []
        item_id = self._item_id
        content = element.text()
        note_id = note.note_id
        position = note.position.to_dict()

        def call(revision: int) -> dict[str, Any]:
            return self.client.save_note(
                item_id,
                note_id=note_id,
                content=content,
                rects=rects,
                position=position,
                revision=revision,
            )

        def on_success(record: dict[str, Any]) -> None:
            saved_id = record.get("id") if record else None
            if saved_id and saved_id != note.note_id:
                note.note_id = saved_id
                note.element.dataset[NOTE_ID_KEY] = saved_id

        return self.queue.submit(f"note {note_id}", call, on_success)

    # ------------------------------------------------------------------
    # Anchoring
    # ------------------------------------------------------------------

    def on_scroll(self) -> None:
        self.refresh()

    def on_resize(self) -> None:
        self.refresh()

    def refresh(self) -> None:
        """
        One anchoring pass over every highlight.

        A highlight shows either its live marker or ghosts at its last-known
        page rects, never both. Notes follow the marker, or the first ghost
        rect when the marker is gone.
        """
        for entry in self.registry:
            marker = entry.resolve_marker(self.host)
            if marker is not None:
                entry.clear_ghosts()
            elif entry.rects and not entry.ghosts:
                entry.ghosts = [self.host.create_ghost(rect) for rect in entry.rects]
            self._position_note(entry, marker)

    def _position_note(self, entry: HighlightEntry, marker: Element | None = None) -> None:
        if entry.note is None:
            return
        viewport = self.host.viewport()
        if marker is None:
            marker = entry.resolve_marker(self.host)

        if marker is not None:
            anchor = marker.bounding_rect()
        elif entry.rects:
            anchor = to_viewport_rect(entry.rects[0], viewport)
        else:
            return

        entry.note.place_near(anchor, viewport)

    # ------------------------------------------------------------------
    # Ink
    # ------------------------------------------------------------------

    def on_pointer_down(self, x: float, y: float) -> None:
        if self.tool != Tool.DRAW:
            return
        self._active_stroke = [Point(x, y)]
        self.strokes.append(self._active_stroke)

    def on_pointer_move(self, x: float, y: float) -> None:
        if self._active_stroke is None or self.tool != Tool.DRAW:
            return
        self._active_stroke.append(Point(x, y))

    def on_pointer_up(self) -> None:
        self._active_stroke = None

    # ------------------------------------------------------------------
    # Restore / persistence
    # ------------------------------------------------------------------

    def _restore(self, page_url: str) -> None:
        try:
            bundle = self.client.get_item_by_url(page_url)
        except Exception as e:
            logger.warning("Failed to load annotations for %s: %s", redact(page_url), e)
            return
        if not bundle:
            return

        for highlight in bundle.get("highlights", []):
            self.queue.observe(highlight.get("revision"))
            self.restore_highlight(highlight["id"], parse_rects(highlight.get("rects_json")))
        for note in bundle.get("notes", []):
            self.queue.observe(note.get("revision"))
            self.restore_note(note["id"], note.get("content"), note.get("position_json"))

    def flush(self) -> int:
        """Drain the persistence queue (called between render passes)."""
        return self.queue.drain()
