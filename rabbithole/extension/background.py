"""
Background controller for the browser extension.

Owns the set of saved tabs. The toolbar action asks the page to save or
unsave; the page's save-state-changed answer is what decides the icon.
Navigation (a tab starting to load) resets that tab.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from rabbithole.annotator.messages import (
    SaveRequest,
    SaveStateChanged,
    UnsaveRequest,
    parse_message,
)
from rabbithole.observability.logging import get_logger
from rabbithole.utils.redaction import redact

logger = get_logger(__name__)


class ExtensionPort(Protocol):
    """The extension platform's tab messaging and icon APIs."""

    def send_to_tab(self, tab_id: int, message: dict[str, Any]) -> None:
        """Deliver message to the tab's content script; raises if nobody listens."""
        ...

    def set_icon(self, tab_id: int, saved: bool) -> None:
        """Show the saved or default icon for tab_id; raises on failure."""
        ...


@dataclass
class TabInfo:
    id: int | None = None
    url: str | None = None
    title: str | None = None


class TabSaveStateController:
    def __init__(self, port: ExtensionPort):
        self._port = port
        self._saved_tabs: set[int] = set()

    def is_saved(self, tab_id: int) -> bool:
        return tab_id in self._saved_tabs

    def on_action_clicked(self, tab: TabInfo) -> None:
        """Toggle: a saved tab is unsaved at once; an unsaved one is asked to save."""
        logger.info("Save button clicked for %s", redact(tab.url))
        if tab.id is None:
            return

        if tab.id in self._saved_tabs:
            self._saved_tabs.discard(tab.id)
            self._set_icon(tab.id, False)
            self._send(tab.id, UnsaveRequest().to_wire())
            return

        # Icon changes only when the page confirms
        self._send(tab.id, SaveRequest(url=tab.url, title=tab.title).to_wire())

    def on_runtime_message(self, message: Any, sender_tab_id: int | None) -> None:
        if sender_tab_id is None:
            return

        parsed = parse_message(message)
        if not isinstance(parsed, SaveStateChanged):
            return

        if parsed.saved:
            self._saved_tabs.add(sender_tab_id)
        else:
            self._saved_tabs.discard(sender_tab_id)
        self._set_icon(sender_tab_id, parsed.saved)

    def on_tab_updated(self, tab_id: int, change_info: dict[str, Any]) -> None:
        if change_info.get("status") != "loading":
            return
        self._saved_tabs.discard(tab_id)
        self._set_icon(tab_id, False)
        self._send(tab_id, UnsaveRequest().to_wire())

    def _send(self, tab_id: int, message: dict[str, Any]) -> None:
        try:
            self._port.send_to_tab(tab_id, message)
        except Exception as e:
            logger.debug("Message to tab %s dropped (no receiver?): %s", tab_id, e)

    def _set_icon(self, tab_id: int, saved: bool) -> None:
        try:
            self._port.set_icon(tab_id, saved)
        except Exception as e:
            logger.debug("setIcon failed for tab %s, falling back: %s", tab_id, e)
            if saved:
                try:
                    self._port.set_icon(tab_id, False)
                except Exception as fallback_error:
                    logger.debug("Default icon failed for tab %s: %s", tab_id, fallback_error)
