"""Pydantic request models for the Rabbithole API.

Field names follow the extension's JSON (camelCase where it sends camelCase).
Unknown fields are ignored; absent optional fields stay None.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rabbithole.config import ITEM_TITLE_MAX_LENGTH
from rabbithole.utils.validators import ValidationError, is_uuid, validate_page_url


class _RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ItemCreateRequest(_RequestModel):
    page_url: str = Field(alias="pageUrl")
    title: str | None = Field(default=None, max_length=ITEM_TITLE_MAX_LENGTH)

    @field_validator("page_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        try:
            return validate_page_url(v)
        except ValidationError as e:
            raise ValueError(str(e)) from None


class ItemUpdateRequest(_RequestModel):
    title: str | None = Field(default=None, max_length=ITEM_TITLE_MAX_LENGTH)


class _AnnotationRequest(_RequestModel):
    """Annotations carry an optional client id and an optional monotonic revision."""

    id: str | None = None
    revision: int | None = Field(default=None, ge=0)

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str | None) -> str | None:
        if v is not None and not is_uuid(v):
            raise ValueError("Invalid uuid")
        return v


class NoteRequest(_AnnotationRequest):
    content: str | None = None
    position: Any = None
    rects: Any = None


class HighlightRequest(_AnnotationRequest):
    text: str | None = None
    rects: Any = None


class DrawingRequest(_AnnotationRequest):
    blob_ref: str = Field(alias="blobRef", min_length=1)
    bounds: Any = None

