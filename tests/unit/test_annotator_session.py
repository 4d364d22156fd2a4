"""
Tests for the annotator session state machine.

Validates:
1. Save/unsave transitions and what gets reported to the background
2. Tool toggling and the UI calls it makes
3. Highlight creation, ghosts and re-anchoring
4. Notes attached to highlights and their persisted payload
5. Restoring stored annotations after save
"""

from __future__ import annotations

from rabbithole.annotator.geometry import Rect
from rabbithole.annotator.host import HIGHLIGHT_ID_KEY, NOTE_HIGHLIGHT_KEY, NOTE_ID_KEY
from rabbithole.annotator.messages import SAVE_REQUEST, SAVE_STATE_CHANGED, UNSAVE_REQUEST
from rabbithole.annotator.notes import HIGHLIGHT_NOTE_HEADER, PLAIN_NOTE_HEADER
from rabbithole.annotator.persistence import PersistQueue
from rabbithole.annotator.session import AnnotatorSession, Tool
from rabbithole.observability.telemetry import get_counter
from rabbithole.utils.validators import is_uuid


def _saved(session) -> AnnotatorSession:
    assert session.save() is True
    return session


class TestSaveState:
    def test_save_reports_saved_and_shows_ui(self, session, host, fake_client, reported):
        assert session.save() is True

        assert session.saved is True
        assert session.item_id == "item-1"
        assert fake_client.saved_items == [("https://example.com/article", "An article")]
        assert reported == [{"type": SAVE_STATE_CHANGED, "saved": True}]
        assert host.ui_visible is True
        assert host.active_tool == "none"

    def test_save_uses_message_url_and_title(self, session, fake_client):
        session.save("https://example.com/other", "Other")
        assert fake_client.saved_items == [("https://example.com/other", "Other")]

    def test_failed_save_reports_unsaved(self, session, host, fake_client, reported):
        fake_client.fail_save = True

        assert session.save() is False

        assert session.saved is False
        assert session.item_id is None
        assert reported == [{"type": SAVE_STATE_CHANGED, "saved": False}]
        assert host.ui_visible is None
        assert get_counter("annotator.save_failed") == 1

    def test_unsave_clears_runtime_state(self, session, host, reported):
        _saved(session)
        session.press_tool(Tool.HIGHLIGHT)
        host.select([Rect(10, 10, 50, 12)], wrap_fails=True)
        session.on_mouse_up()
        assert len(host.ghosts) == 1

        session.unsave()

        assert session.saved is False
        assert session.tool == Tool.NONE
        assert len(session.registry) == 0
        assert host.ghosts[0].removed is True
        assert host.ui_visible is False
        assert reported[-1] == {"type": SAVE_STATE_CHANGED, "saved": False}

    def test_unsave_removes_notes(self, session, host):
        _saved(session)
        session.press_tool(Tool.NOTE)
        marker = host.add_marker("7", Rect(100, 50, 80, 20))
        session.on_double_click(marker)
        note_element = host.notes[0]

        session.unsave()

        assert session.notes == []
        assert note_element.removed is True

    def test_navigation_behaves_like_unsave(self, session, reported):
        _saved(session)
        session.on_document_loading()
        assert session.saved is False
        assert reported[-1]["saved"] is False

    def test_ui_untouched_while_document_loading(self, session, host):
        host.is_ready = False
        _saved(session)
        assert host.ui_calls == 0

        host.is_ready = True
        session.on_document_ready()
        assert host.ui_visible is True

    def test_messages_drive_save_and_unsave(self, session, fake_client):
        session.handle_message(
            {"type": SAVE_REQUEST, "url": "https://example.com/m", "title": "M"}
        )
        assert session.saved is True
        assert fake_client.saved_items[-1] == ("https://example.com/m", "M")

        session.handle_message({"type": UNSAVE_REQUEST})
        assert session.saved is False

    def test_unknown_message_ignored(self, session, fake_client):
        session.handle_message({"type": "something-else"})
        session.handle_message("not a dict")
        assert fake_client.saved_items == []


class TestTools:
    def test_tool_is_none_while_unsaved(self, session):
        session.press_tool(Tool.DRAW)
        assert session.tool == Tool.NONE

    def test_press_toggles(self, session, host):
        _saved(session)

        assert session.press_tool("highlight") == Tool.HIGHLIGHT
        assert host.active_tool == "highlight"
        assert host.pointer_capture is False

        assert session.press_tool(Tool.HIGHLIGHT) == Tool.NONE
        assert host.active_tool == "none"

    def test_draw_captures_pointer(self, session, host):
        _saved(session)
        session.press_tool(Tool.DRAW)
        assert host.pointer_capture is True

        session.press_tool(Tool.NOTE)
        assert host.pointer_capture is False

    def test_strokes_recorded_only_with_draw_tool(self, session):
        _saved(session)
        session.on_pointer_down(1, 1)
        assert session.strokes == []

        session.press_tool(Tool.DRAW)
        session.on_pointer_down(1, 1)
        session.on_pointer_move(2, 3)
        session.on_pointer_move(4, 5)
        session.on_pointer_up()
        session.on_pointer_move(9, 9)

        assert len(session.strokes) == 1
        assert [(p.left, p.top) for p in session.strokes[0]] == [(1, 1), (2, 3), (4, 5)]


class TestHighlights:
    def test_mouse_up_with_highlight_tool_wraps_selection(self, session, host):
        _saved(session)
        session.press_tool(Tool.HIGHLIGHT)
        host.scroll_to(0, 100)
        selection = host.select([Rect(10, 20, 50, 12), Rect(10, 34, 30, 12)], "two lines")

        entry = session.on_mouse_up()

        assert entry is not None
        assert entry.id == "1"
        assert [r.top for r in entry.rects] == [120, 134]
        assert selection.cleared is True
        assert entry.resolve_marker(host) is host.find_highlight("1")
        assert host.ghosts == []
        assert session.queue.pending == 1

    def test_mouse_up_without_highlight_tool_does_nothing(self, session, host):
        _saved(session)
        host.select([Rect(10, 20, 50, 12)])
        assert session.on_mouse_up() is None
        assert len(session.registry) == 0

    def test_collapsed_selection_ignored(self, session, host):
        _saved(session)
        session.press_tool(Tool.HIGHLIGHT)
        host.select([])
        assert session.on_mouse_up() is None

    def test_unwrappable_selection_falls_back_to_ghosts(self, session, host):
        _saved(session)
        session.press_tool(Tool.HIGHLIGHT)
        host.select([Rect(10, 20, 50, 12), Rect(10, 34, 30, 12)], wrap_fails=True)

        entry = session.on_mouse_up()

        assert entry.resolve_marker(host) is None
        assert len(host.ghosts) == 2
        assert session.queue.pending == 1

    def test_flush_renames_client_id_to_server_id(self, session, host, fake_client):
        _saved(session)
        session.press_tool(Tool.HIGHLIGHT)
        host.select([Rect(10, 20, 50, 12)], "quoted")
        session.on_mouse_up()

        assert session.flush() == 1

        sent = fake_client.highlights[0]
        assert sent["item_id"] == "item-1"
        assert sent["text"] == "quoted"
        assert sent["revision"] == 1
        assert sent["rects"] == [{"top": 20, "left": 10, "width": 50, "height": 12}]
        assert is_uuid(sent["id"])

        assert "1" not in session.registry
        assert sent["id"] in session.registry
        marker = host.find_highlight(sent["id"])
        assert marker is not None
        assert marker.dataset[HIGHLIGHT_ID_KEY] == sent["id"]

    def test_failed_persist_keeps_optimistic_highlight(self, session, host, fake_client):
        _saved(session)
        fake_client.fail_writes = True
        session.press_tool(Tool.HIGHLIGHT)
        host.select([Rect(10, 20, 50, 12)])
        session.on_mouse_up()

        assert session.flush() == 0

        assert "1" in session.registry
        assert host.find_highlight("1") is not None
        assert get_counter("annotator.persist_failed") == 1

    def test_removed_marker_shows_ghosts_until_rerendered(self, session, host):
        _saved(session)
        session.press_tool(Tool.HIGHLIGHT)
        host.select([Rect(10, 20, 50, 12)])
        entry = session.on_mouse_up()

        host.find_highlight("1").remove()
        session.on_scroll()
        assert len(host.ghosts) == 1
        ghost = host.ghosts[0]

        # Second pass must not stack another set of ghosts
        session.refresh()
        assert len(host.ghosts) == 1

        rerendered = host.add_marker("1", Rect(10, 20, 50, 12))
        session.on_resize()
        assert ghost.removed is True
        assert entry.ghosts == []
        assert entry.resolve_marker(host) is rerendered


class TestNotes:
    def _highlight(self, session, host):
        _saved(session)
        session.press_tool(Tool.HIGHLIGHT)
        host.select([Rect(100, 50, 80, 20)], "anchor")
        entry = session.on_mouse_up()
        session.press_tool(Tool.NOTE)
        return entry

    def test_double_click_on_highlight_creates_note(self, session, host):
        entry = self._highlight(session, host)
        marker = host.find_highlight("1")

        note = session.on_double_click(marker)

        assert note is not None
        assert entry.note is note
        element = host.notes[0]
        assert element.header == HIGHLIGHT_NOTE_HEADER
        assert element.dataset[NOTE_HIGHLIGHT_KEY] == "1"
        assert element.dataset[NOTE_ID_KEY] == note.note_id
        # Created just right of the marker, then placed beside it
        assert (note.position.left, note.position.top) == (188, 44)
        assert element.moves[-1] == (192, 50)

    def test_double_click_needs_note_tool(self, session, host):
        _saved(session)
        marker = host.add_marker("1", Rect(100, 50, 80, 20))
        assert session.on_double_click(marker) is None

    def test_double_click_outside_highlight(self, session, host):
        _saved(session)
        session.press_tool(Tool.NOTE)
        assert session.on_double_click(None) is None
        assert host.notes == []

    def test_blur_queues_note_with_anchor_rects(self, session, host, fake_client):
        self._highlight(session, host)
        note = session.on_double_click(host.find_highlight("1"))
        host.notes[0].content = "my thoughts"

        revision = session.on_note_blur(host.notes[0])
        session.flush()

        assert revision == 2
        sent = fake_client.notes[0]
        assert sent["id"] == note.note_id
        assert sent["content"] == "my thoughts"
        assert sent["position"] == {"left": 188, "top": 44}
        assert sent["rects"] == [{"top": 50, "left": 100, "width": 80, "height": 20}]
        assert sent["revision"] == 2

    def test_note_follows_highlight_rename(self, session, host, fake_client):
        self._highlight(session, host)
        note = session.on_double_click(host.find_highlight("1"))

        session.flush()

        server_id = fake_client.highlights[0]["id"]
        assert note.highlight_id == server_id
        assert host.notes[0].dataset[NOTE_HIGHLIGHT_KEY] == server_id

    def test_blur_of_foreign_element_ignored(self, session, host):
        _saved(session)
        stray = host.create_note(0, 0, "x", "y")
        assert session.on_note_blur(stray) is None

    def test_note_follows_ghost_when_marker_gone(self, session, host):
        self._highlight(session, host)
        session.on_double_click(host.find_highlight("1"))
        element = host.notes[0]

        host.scroll_to(0, 30)
        host.find_highlight("1").remove()
        session.refresh()

        # First ghost rect in viewport coordinates: (100, 20, 80, 20)
        assert element.moves[-1] == (192, 20)


class TestRestore:
    def test_saved_annotations_replayed(self, host, fake_client):
        fake_client.bundle = {
            "item": {"id": "item-1"},
            "highlights": [
                {
                    "id": "h-1",
                    "rects_json": [
                        {"top": 5, "left": 6, "width": 7, "height": 8},
                        {"top": "bad"},
                    ],
                }
            ],
            "notes": [
                {"id": "n-1", "content": "remember", "position_json": {"left": 5, "top": 6}},
                {"id": "n-2", "content": None, "position_json": None},
            ],
            "drawings": [],
        }
        session = AnnotatorSession(host, fake_client)

        session.save()

        entry = session.registry.get("h-1")
        assert entry is not None
        assert entry.persist_id == "h-1"
        assert len(entry.rects) == 1
        assert len(host.ghosts) == 1

        first, second = host.notes
        assert first.header == PLAIN_NOTE_HEADER
        assert first.content == "remember"
        assert (first.rect.left, first.rect.top) == (5, 6)
        assert first.dataset[NOTE_ID_KEY] == "n-1"
        assert second.content == "Edit me"
        assert (second.rect.left, second.rect.top) == (24, 24)

    def test_restore_uses_live_marker_when_present(self, host, fake_client):
        fake_client.bundle = {
            "highlights": [
                {"id": "h-1", "rects_json": [{"top": 5, "left": 6, "width": 7, "height": 8}]}
            ],
            "notes": [],
        }
        marker = host.add_marker("h-1", Rect(6, 5, 7, 8))
        session = AnnotatorSession(host, fake_client)

        session.save()

        assert host.ghosts == []
        assert session.registry.get("h-1").resolve_marker(host) is marker

    def test_restore_failure_keeps_page_saved(self, host, fake_client):
        def broken(page_url):
            raise RuntimeError("offline")

        fake_client.get_item_by_url = broken
        session = AnnotatorSession(host, fake_client)

        assert session.save() is True
        assert len(session.registry) == 0

    def test_edits_after_restore_outrank_stored_revisions(self, host, fake_client):
        fake_client.bundle = {
            "highlights": [{"id": "h-1", "rects_json": [], "revision": 12}],
            "notes": [
                {"id": "n-1", "content": "old", "position_json": None, "revision": 30},
            ],
        }
        session = AnnotatorSession(host, fake_client, queue=PersistQueue(clock=lambda: 0))
        session.save()

        host.notes[0].content = "new"
        revision = session.on_note_blur(host.notes[0])
        session.flush()

        assert revision == 31
        assert fake_client.notes[-1]["id"] == "n-1"
        assert fake_client.notes[-1]["revision"] == 31
