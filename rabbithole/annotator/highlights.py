"""
Highlight bookkeeping for one annotator session.

An entry holds only a weak reference to its marker: the host page may
remove or replace the element at any time, and a dead or detached marker
must read as absent rather than dangle. resolve_marker() is the only way
to reach it.
"""

from __future__ import annotations

import weakref
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from rabbithole.annotator.geometry import Rect
from rabbithole.annotator.host import HIGHLIGHT_ID_KEY, NOTE_HIGHLIGHT_KEY, DocumentHost, Element

if TYPE_CHECKING:
    from rabbithole.annotator.notes import FloatingNote


@dataclass
class HighlightEntry:
    id: str
    rects: list[Rect] = field(default_factory=list)
    note: FloatingNote | None = None
    ghosts: list[Element] = field(default_factory=list)
    # Server id sent with the first persist; becomes the entry id once confirmed
    persist_id: str | None = None
    _marker: weakref.ref | None = field(default=None, repr=False)

    def attach_marker(self, marker: Element | None) -> None:
        self._marker = weakref.ref(marker) if marker is not None else None

    def resolve_marker(self, host: DocumentHost) -> Element | None:
        """
        Live marker element, or None.

        Weak reference first; if it is dead or detached, look the marker up
        by id (the page may have re-rendered it) and re-link to what is found.
        """
        marker = self._marker() if self._marker is not None else None
        if marker is not None and host.contains(marker):
            return marker

        found = host.find_highlight(self.id)
        self.attach_marker(found)
        return found

    def clear_ghosts(self) -> None:
        for ghost in self.ghosts:
            ghost.remove()
        self.ghosts = []


class HighlightRegistry:
    """Entries keyed by id. Client ids come from a per-session counter."""

    def __init__(self):
        self._entries: dict[str, HighlightEntry] = {}
        self._counter = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HighlightEntry]:
        return iter(list(self._entries.values()))

    def __contains__(self, highlight_id: object) -> bool:
        return highlight_id in self._entries

    def next_client_id(self) -> str:
        self._counter += 1
        return str(self._counter)

    def add(self, entry: HighlightEntry) -> HighlightEntry:
        self._entries[entry.id] = entry
        return entry

    def get(self, highlight_id: str) -> HighlightEntry | None:
        return self._entries.get(highlight_id)

    def get_or_create(self, highlight_id: str) -> HighlightEntry:
        entry = self._entries.get(highlight_id)
        if entry is None:
            entry = self.add(HighlightEntry(id=highlight_id))
        return entry

    def rename(self, old_id: str, new_id: str, host: DocumentHost) -> bool:
        """
        Swap a client id for the server id.

        Registry key, marker dataset and note back-reference change together,
        so no lookup ever sees a half-renamed entry.
        """
        if old_id == new_id:
            return False
        entry = self._entries.get(old_id)
        if entry is None:
            return False

        marker = entry.resolve_marker(host)

        del self._entries[old_id]
        entry.id = new_id
        if marker is not None:
            marker.dataset[HIGHLIGHT_ID_KEY] = new_id
        if entry.note is not None:
            entry.note.highlight_id = new_id
            entry.note.element.dataset[NOTE_HIGHLIGHT_KEY] = new_id
        self._entries[new_id] = entry
        return True

    def reset(self) -> None:
        """Drop every entry and its ghosts. Markers in the page are left alone."""
        for entry in self._entries.values():
            entry.clear_ghosts()
        self._entries.clear()
