"""
Pytest configuration for Rabbithole tests

Provides:
- a fresh SQLite database per test (RABBITHOLE_DB_PATH under tmp_path)
- a TestClient with the model-backed services swapped for fakes
- an in-memory DocumentHost for the annotator engine
"""

from __future__ import annotations

import json
from typing import Any

import pytest

from rabbithole.annotator.geometry import Rect, Viewport
from rabbithole.annotator.host import HIGHLIGHT_ID_KEY
from rabbithole.infrastructure.database import init_database, reset_pool
from rabbithole.observability.telemetry import reset_counters


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """No test reaches a real model, and counters start at zero."""
    monkeypatch.setenv("RABBITHOLE_USE_LLM", "false")
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    monkeypatch.delenv("GOOGLE_CLOUD_PROJECT", raising=False)
    reset_counters()
    yield


@pytest.fixture
def db(tmp_path, monkeypatch):
    """Initialized database file, private to the test."""
    db_path = tmp_path / "rabbithole.db"
    monkeypatch.setenv("RABBITHOLE_DB_PATH", str(db_path))
    reset_pool()
    init_database()
    yield db_path
    reset_pool()


class FakeLlm:
    """Stands in for call_llm: returns queued responses, or raises queued exceptions."""

    def __init__(self, *responses: Any):
        self.responses = list(responses)
        self.calls: list[tuple[str, str]] = []

    def __call__(self, prompt: str, system_instruction: str) -> str:
        self.calls.append((prompt, system_instruction))
        if not self.responses:
            return ""
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, dict):
            return json.dumps(response)
        return response


@pytest.fixture
def fake_llm():
    return FakeLlm


@pytest.fixture
def api(db):
    """
    TestClient over the real app.

    Grouping and recommendations run with the model switched off unless a test
    installs its own override in api.app.dependency_overrides.
    """
    from fastapi.testclient import TestClient

    from rabbithole.api.app import app
    from rabbithole.api.routes.items import get_grouping_service
    from rabbithole.api.routes.recommendations import get_recommendation_generator
    from rabbithole.grouping.heuristic import GroupingService
    from rabbithole.recommendations.generator import RecommendationGenerator

    app.dependency_overrides[get_grouping_service] = lambda: GroupingService(llm_enabled=False)
    app.dependency_overrides[get_recommendation_generator] = lambda: RecommendationGenerator(
        llm_enabled=False
    )
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


def auth(user_id: str = "user-a") -> dict[str, str]:
    return {"Authorization": f"Bearer {user_id}"}


@pytest.fixture
def auth_headers():
    return auth


# ----------------------------------------------------------------------
# Annotator fakes
# ----------------------------------------------------------------------


class FakeElement:
    def __init__(self, rect: Rect | None = None, host: FakeDocumentHost | None = None):
        self.dataset: dict[str, str] = {}
        self.rect = rect or Rect(left=0, top=0, width=10, height=10)
        self.removed = False
        self._host = host

    def bounding_rect(self) -> Rect:
        return self.rect

    def remove(self) -> None:
        self.removed = True
        if self._host is not None:
            self._host.detach(self)


class FakeNoteElement(FakeElement):
    def __init__(self, left: float, top: float, header: str, content: str, host):
        super().__init__(Rect(left=left, top=top, width=200, height=100), host)
        self.header = header
        self.content = content
        self.moves: list[tuple[float, float]] = []

    def text(self) -> str:
        return self.content

    def move_to(self, left: float, top: float) -> None:
        self.moves.append((left, top))
        self.rect = Rect(left=left, top=top, width=self.rect.width, height=self.rect.height)


class FakeSelection:
    def __init__(self, host, rects: list[Rect], text: str, wrap_fails: bool = False):
        self._host = host
        self._rects = rects
        self._text = text
        self._wrap_fails = wrap_fails
        self.cleared = False

    @property
    def collapsed(self) -> bool:
        return not self._rects

    def client_rects(self) -> list[Rect]:
        return list(self._rects)

    def text(self) -> str:
        return self._text

    def wrap_in_marker(self, highlight_id: str) -> FakeElement:
        if self._wrap_fails:
            raise ValueError("range crosses element boundary")
        return self._host.add_marker(highlight_id, self._rects[0])

    def clear(self) -> None:
        self.cleared = True


class FakeDocumentHost:
    """In-memory page: tracks attached elements and every UI call."""

    def __init__(
        self,
        page_url: str = "https://example.com/article",
        page_title: str | None = "An article",
        viewport: Viewport | None = None,
    ):
        self.page_url = page_url
        self.page_title = page_title
        self.is_ready = True
        self._viewport = viewport or Viewport(width=1000, height=800)
        self.attached: list[FakeElement] = []
        self.ghosts: list[FakeElement] = []
        self.notes: list[FakeNoteElement] = []
        self.selection: FakeSelection | None = None
        self.ui_visible: bool | None = None
        self.active_tool: str | None = None
        self.pointer_capture: bool | None = None
        self.ui_calls = 0

    # Test helpers

    def add_marker(self, highlight_id: str, rect: Rect) -> FakeElement:
        marker = FakeElement(rect, self)
        marker.dataset[HIGHLIGHT_ID_KEY] = highlight_id
        self.attached.append(marker)
        return marker

    def select(self, rects: list[Rect], text: str = "selected text", wrap_fails=False):
        self.selection = FakeSelection(self, rects, text, wrap_fails)
        return self.selection

    def detach(self, element: FakeElement) -> None:
        self.attached = [e for e in self.attached if e is not element]

    def scroll_to(self, x: float, y: float) -> None:
        vp = self._viewport
        self._viewport = Viewport(width=vp.width, height=vp.height, scroll_x=x, scroll_y=y)

    # DocumentHost

    def viewport(self) -> Viewport:
        return self._viewport

    def contains(self, element) -> bool:
        return any(e is element for e in self.attached)

    def find_highlight(self, highlight_id: str):
        for element in self.attached:
            if element.dataset.get(HIGHLIGHT_ID_KEY) == highlight_id:
                return element
        return None

    def closest_highlight(self, target):
        if target is not None and HIGHLIGHT_ID_KEY in target.dataset and self.contains(target):
            return target
        return None

    def current_selection(self):
        return self.selection

    def create_ghost(self, page_rect: Rect) -> FakeElement:
        ghost = FakeElement(page_rect, self)
        self.attached.append(ghost)
        self.ghosts.append(ghost)
        return ghost

    def create_note(self, left: float, top: float, header: str, content: str):
        note = FakeNoteElement(left, top, header, content, self)
        self.attached.append(note)
        self.notes.append(note)
        return note

    def set_ui_visible(self, visible: bool) -> None:
        self.ui_calls += 1
        self.ui_visible = visible

    def set_active_tool(self, tool: str) -> None:
        self.active_tool = tool

    def set_pointer_capture(self, enabled: bool) -> None:
        self.pointer_capture = enabled


class FakeApiClient:
    """Records annotator writes; echoes the client id the way the API does."""

    def __init__(self, item_id: str = "item-1", bundle: dict[str, Any] | None = None):
        self.item_id = item_id
        self.bundle = bundle
        self.fail_save = False
        self.fail_writes = False
        self.saved_items: list[tuple[str, str | None]] = []
        self.highlights: list[dict[str, Any]] = []
        self.notes: list[dict[str, Any]] = []

    def save_item(self, page_url: str, title: str | None = None) -> dict[str, Any]:
        if self.fail_save:
            from rabbithole.infrastructure.retry import TransportError

            raise TransportError("Failed to save item: 500", status_code=500)
        self.saved_items.append((page_url, title))
        return {"id": self.item_id, "page_url": page_url, "title": title}

    def get_item_by_url(self, page_url: str) -> dict[str, Any] | None:
        return self.bundle

    def save_highlight(self, item_id, *, highlight_id, text, rects, revision=None):
        if self.fail_writes:
            from rabbithole.infrastructure.retry import TransportError

            raise TransportError("Failed to save highlight: 503", status_code=503)
        record = {
            "item_id": item_id,
            "id": highlight_id,
            "text": text,
            "rects": rects,
            "revision": revision,
        }
        self.highlights.append(record)
        return record

    def save_note(self, item_id, *, note_id, content, rects, position, revision=None):
        record = {
            "item_id": item_id,
            "id": note_id,
            "content": content,
            "rects": rects,
            "position": position,
            "revision": revision,
        }
        self.notes.append(record)
        return record


@pytest.fixture
def make_host():
    return FakeDocumentHost


@pytest.fixture
def host(make_host):
    return make_host()


@pytest.fixture
def fake_client():
    return FakeApiClient()


@pytest.fixture
def reported():
    """Collects save-state-changed messages sent to the background."""
    return []


@pytest.fixture
def session(host, fake_client, reported):
    from rabbithole.annotator.persistence import PersistQueue
    from rabbithole.annotator.session import AnnotatorSession

    # Revisions count from 1 so tests can assert them
    queue = PersistQueue(clock=lambda: 0)
    return AnnotatorSession(host, fake_client, report_state=reported.append, queue=queue)
