"""Messages exchanged between the extension background and the page."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

SAVE_REQUEST = "annotator:save-page-request"
UNSAVE_REQUEST = "annotator:unsave-page-request"
SAVE_STATE_CHANGED = "annotator:save-state-changed"


class _Message(BaseModel):
    model_config = ConfigDict(extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class SaveRequest(_Message):
    type: Literal["annotator:save-page-request"] = SAVE_REQUEST
    url: str | None = None
    title: str | None = None


class UnsaveRequest(_Message):
    type: Literal["annotator:unsave-page-request"] = UNSAVE_REQUEST


class SaveStateChanged(_Message):
    type: Literal["annotator:save-state-changed"] = SAVE_STATE_CHANGED
    saved: bool


Message = Annotated[
    SaveRequest | UnsaveRequest | SaveStateChanged,
    Field(discriminator="type"),
]

_message_adapter: TypeAdapter[Message] = TypeAdapter(Message)


def parse_message(raw: Any) -> SaveRequest | UnsaveRequest | SaveStateChanged | None:
    """Typed message, or None for anything that isn't one of ours."""
    if not isinstance(raw, dict):
        return None
    try:
        return _message_adapter.validate_python(raw)
    except ValidationError:
        return None
