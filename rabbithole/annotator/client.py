"""HTTP client the annotator uses to reach the Rabbithole API."""

from __future__ import annotations

from typing import Any

import httpx

from rabbithole.config import ANNOTATOR_HTTP_TIMEOUT, FALLBACK_USER_ID, RABBITHOLE_API_URL
from rabbithole.infrastructure.retry import TransportError
from rabbithole.observability.logging import get_logger

logger = get_logger(__name__)


class AnnotatorApiClient:
    """
    Thin wrapper over httpx.Client.

    The caller identity goes out in x-user-id. Non-2xx answers and network
    errors raise TransportError; a 404 from the by-URL lookup is None.

    Args:
        user_id: Stored identity; the dev fallback id when absent
        http_client: Pre-built client (tests pass FastAPI's TestClient)
    """

    def __init__(
        self,
        base_url: str = RABBITHOLE_API_URL,
        user_id: str | None = None,
        http_client: httpx.Client | None = None,
        timeout: float = ANNOTATOR_HTTP_TIMEOUT,
    ):
        self.user_id = user_id or FALLBACK_USER_ID
        self._client = http_client or httpx.Client(base_url=base_url, timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        headers = {"x-user-id": self.user_id}
        try:
            response = self._client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e
        return response

    @staticmethod
    def _json_or_raise(response: httpx.Response, action: str) -> dict[str, Any]:
        if response.status_code >= 400:
            raise TransportError(
                f"Failed to {action}: {response.status_code} {response.text[:200]}",
                status_code=response.status_code,
            )
        return response.json()

    def save_item(self, page_url: str, title: str | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {"pageUrl": page_url}
        if title is not None:
            body["title"] = title
        response = self._request("POST", "/items", json=body)
        return self._json_or_raise(response, "save item")["item"]

    def get_item_by_url(self, page_url: str) -> dict[str, Any] | None:
        """Item bundle for the exact URL, or None when nothing is saved there."""
        response = self._request("GET", "/items/by-url", params={"url": page_url})
        if response.status_code == 404:
            return None
        return self._json_or_raise(response, "load item")

    def save_highlight(
        self,
        item_id: str,
        *,
        highlight_id: str | None,
        text: str | None,
        rects: list[dict[str, float]],
        revision: int | None = None,
    ) -> dict[str, Any]:
        body = _compact({"id": highlight_id, "text": text, "rects": rects, "revision": revision})
        response = self._request("POST", f"/items/{item_id}/highlights", json=body)
        return self._json_or_raise(response, "save highlight")["highlight"]

    def save_note(
        self,
        item_id: str,
        *,
        note_id: str | None,
        content: str | None,
        rects: list[dict[str, float]],
        position: dict[str, float] | None,
        revision: int | None = None,
    ) -> dict[str, Any]:
        body = _compact(
            {
                "id": note_id,
                "content": content,
                "rects": rects,
                "position": position,
                "revision": revision,
            }
        )
        response = self._request("POST", f"/items/{item_id}/notes", json=body)
        return self._json_or_raise(response, "save note")["note"]

    def save_drawing(
        self,
        item_id: str,
        *,
        blob_ref: str,
        bounds: dict[str, float] | None = None,
        drawing_id: str | None = None,
        revision: int | None = None,
    ) -> dict[str, Any]:
        body = _compact(
            {"id": drawing_id, "blobRef": blob_ref, "bounds": bounds, "revision": revision}
        )
        response = self._request("POST", f"/items/{item_id}/drawings", json=body)
        return self._json_or_raise(response, "save drawing")["drawing"]


def _compact(body: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in body.items() if value is not None}
