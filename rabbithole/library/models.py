"""
Domain records for saved pages and their annotations.

Records mirror table rows. JSON columns (positions, rects, bounds) are stored
as text and decoded in from_db_row(); to_response() renders the row shape
the API returns.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Return current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def now_iso() -> str:
    """Current UTC time as stored in the database (fixed width, so it sorts as text)."""
    return utc_now().isoformat(timespec="microseconds")


def parse_dt(val: str | None) -> datetime | None:
    if val is None:
        return None
    return datetime.fromisoformat(val)


def dump_json(value: Any) -> str | None:
    """Encode a JSON column value; None stays NULL."""
    if value is None:
        return None
    return json.dumps(value, separators=(",", ":"))


def load_json(value: str | None) -> Any:
    if value is None:
        return None
    return json.loads(value)


class _Record(BaseModel):
    model_config = ConfigDict(frozen=False)

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class ItemRecord(_Record):
    """A saved page. (user_id, page_url) is unique."""

    id: str
    user_id: str
    page_url: str
    title: str | None = None
    group_id: str | None = None
    saved_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> ItemRecord:
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            page_url=row["page_url"],
            title=row.get("title"),
            group_id=row.get("group_id"),
            saved_at=parse_dt(row.get("saved_at")) or utc_now(),
            updated_at=parse_dt(row.get("updated_at")) or utc_now(),
        )


class NoteRecord(_Record):
    id: str
    item_id: str
    content: str | None = None
    position_json: Any = None
    rects_json: Any = None
    revision: int | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> NoteRecord:
        return cls(
            id=row["id"],
            item_id=row["item_id"],
            content=row.get("content"),
            position_json=load_json(row.get("position_json")),
            rects_json=load_json(row.get("rects_json")),
            revision=row.get("revision"),
            created_at=parse_dt(row.get("created_at")) or utc_now(),
            updated_at=parse_dt(row.get("updated_at")) or utc_now(),
        )


class HighlightRecord(_Record):
    """Highlighted text with its page-relative rects."""

    id: str
    item_id: str
    text: str | None = None
    rects_json: Any = None
    revision: int | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> HighlightRecord:
        return cls(
            id=row["id"],
            item_id=row["item_id"],
            text=row.get("text"),
            rects_json=load_json(row.get("rects_json")),
            revision=row.get("revision"),
            created_at=parse_dt(row.get("created_at")) or utc_now(),
            updated_at=parse_dt(row.get("updated_at")) or utc_now(),
        )


class DrawingRecord(_Record):
    """Reference to stored ink data; the blob itself lives elsewhere."""

    id: str
    item_id: str
    blob_ref: str
    bounds_json: Any = None
    revision: int | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> DrawingRecord:
        return cls(
            id=row["id"],
            item_id=row["item_id"],
            blob_ref=row["blob_ref"],
            bounds_json=load_json(row.get("bounds_json")),
            revision=row.get("revision"),
            created_at=parse_dt(row.get("created_at")) or utc_now(),
            updated_at=parse_dt(row.get("updated_at")) or utc_now(),
        )


class ItemGroupRecord(_Record):
    """
    A topical group of saved pages. (user_id, label) is unique.

    items is only populated by listing queries.
    """

    id: str
    user_id: str
    label: str
    summary: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    items: list[ItemRecord] = Field(default_factory=list)

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> ItemGroupRecord:
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            label=row["label"],
            summary=row.get("summary"),
            created_at=parse_dt(row.get("created_at")) or utc_now(),
            updated_at=parse_dt(row.get("updated_at")) or utc_now(),
        )


class ItemBundle(BaseModel):
    """An item with all of its annotations."""

    item: ItemRecord
    notes: list[NoteRecord] = Field(default_factory=list)
    highlights: list[HighlightRecord] = Field(default_factory=list)
    drawings: list[DrawingRecord] = Field(default_factory=list)

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
