"""Tests for highlight entries and the per-session registry"""

from __future__ import annotations

import gc

from rabbithole.annotator.geometry import Point, Rect
from rabbithole.annotator.highlights import HighlightEntry, HighlightRegistry
from rabbithole.annotator.host import HIGHLIGHT_ID_KEY, NOTE_HIGHLIGHT_KEY
from rabbithole.annotator.notes import FloatingNote


def test_client_ids_count_up():
    registry = HighlightRegistry()
    assert [registry.next_client_id() for _ in range(3)] == ["1", "2", "3"]


def test_resolve_marker_returns_attached_element(host):
    marker = host.add_marker("1", Rect(0, 0, 10, 10))
    entry = HighlightEntry(id="1")
    entry.attach_marker(marker)

    assert entry.resolve_marker(host) is marker


def test_detached_marker_reads_as_absent(host):
    marker = host.add_marker("1", Rect(0, 0, 10, 10))
    entry = HighlightEntry(id="1")
    entry.attach_marker(marker)

    marker.remove()

    assert entry.resolve_marker(host) is None


def test_collected_marker_reads_as_absent(host):
    entry = HighlightEntry(id="1")
    marker = host.add_marker("1", Rect(0, 0, 10, 10))
    entry.attach_marker(marker)
    host.detach(marker)
    del marker
    gc.collect()

    assert entry.resolve_marker(host) is None


def test_resolve_relinks_rerendered_marker(host):
    old = host.add_marker("1", Rect(0, 0, 10, 10))
    entry = HighlightEntry(id="1")
    entry.attach_marker(old)
    old.remove()

    new = host.add_marker("1", Rect(0, 0, 10, 10))

    assert entry.resolve_marker(host) is new
    # Now held directly, even if the lookup would fail
    new.dataset[HIGHLIGHT_ID_KEY] = "other"
    assert entry.resolve_marker(host) is new


def test_rename_moves_key_marker_and_note(host):
    registry = HighlightRegistry()
    marker = host.add_marker("1", Rect(0, 0, 10, 10))
    note_element = host.create_note(0, 0, "Highlight note", "Edit me")
    note = FloatingNote(note_element, Point(0, 0), highlight_id="1")
    entry = registry.add(HighlightEntry(id="1", note=note))
    entry.attach_marker(marker)

    assert registry.rename("1", "srv-1", host) is True

    assert "1" not in registry
    assert registry.get("srv-1") is entry
    assert entry.id == "srv-1"
    assert marker.dataset[HIGHLIGHT_ID_KEY] == "srv-1"
    assert note.highlight_id == "srv-1"
    assert note_element.dataset[NOTE_HIGHLIGHT_KEY] == "srv-1"


def test_rename_noop_cases(host):
    registry = HighlightRegistry()
    registry.add(HighlightEntry(id="1"))

    assert registry.rename("1", "1", host) is False
    assert registry.rename("missing", "x", host) is False
    assert "1" in registry


def test_rename_without_marker_still_moves_entry(host):
    registry = HighlightRegistry()
    registry.add(HighlightEntry(id="1", rects=[Rect(0, 0, 1, 1)]))

    assert registry.rename("1", "srv-1", host) is True
    assert registry.get("srv-1").rects == [Rect(0, 0, 1, 1)]


def test_reset_removes_ghosts(host):
    registry = HighlightRegistry()
    ghost = host.create_ghost(Rect(0, 0, 1, 1))
    registry.add(HighlightEntry(id="1", ghosts=[ghost]))

    registry.reset()

    assert len(registry) == 0
    assert ghost.removed is True


def test_get_or_create():
    registry = HighlightRegistry()
    created = registry.get_or_create("h")
    assert registry.get_or_create("h") is created
    assert list(registry) == [created]
