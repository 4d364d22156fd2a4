"""
Grouping heuristic - files a newly saved page under a topical group.

Runs during item creation. Uses Gemini to pick one of the user's recent
groups or propose a new label, and falls back to deterministic rules when the
model is off, fails, or answers with something unusable.

Never raises: the worst outcome for the caller is "no group".
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from rabbithole.config import (
    GEMINI_MODEL,
    GROUPING_CANDIDATE_GROUPS,
    GROUPING_DEFAULT_LABEL,
    GROUPING_FALLBACK_LABEL_LENGTH,
    GROUPING_ITEMS_PER_GROUP,
    GROUPING_LABEL_MAX_LENGTH,
    GROUPING_SUMMARY_MAX_LENGTH,
    GROUPING_TEMPERATURE,
)
from rabbithole.library.models import ItemGroupRecord, ItemRecord
from rabbithole.library.repository import GroupRepository
from rabbithole.llm.gemini import is_llm_configured
from rabbithole.observability.logging import get_logger
from rabbithole.observability.telemetry import counter, log_event
from rabbithole.utils.redaction import redact, sanitize_for_prompt
from rabbithole.utils.validators import hostname_of, is_uuid

logger = get_logger(__name__)

# (prompt, system_instruction) -> raw model text
LlmCall = Callable[[str, str], str]

GROUPING_SYSTEM_INSTRUCTION = (
    "You organize saved web pages into concise topical groups. "
    "Pick an existing group when it clearly fits; otherwise propose a short new label. "
    "Respond only with JSON."
)

SUGGESTION_FORMAT = (
    "{ action: 'assign' | 'create', target_group_id?: uuid, label?: string, summary?: string }"
)


class GroupingSuggestion(BaseModel):
    """Schema for the model's answer. Unknown keys are dropped."""

    action: Literal["assign", "create"]
    target_group_id: str | None = None
    label: str | None = Field(default=None, min_length=1, max_length=GROUPING_LABEL_MAX_LENGTH)
    summary: str | None = Field(default=None, max_length=GROUPING_SUMMARY_MAX_LENGTH)
    reason: str | None = None

    @field_validator("target_group_id")
    @classmethod
    def target_is_uuid(cls, v: str | None) -> str | None:
        if v is not None and not is_uuid(v):
            raise ValueError("target_group_id must be a UUID")
        return v


def derive_fallback_label(title: str | None, page_url: str) -> str:
    """
    Label for a user's first group when the model can't supply one.

    Title cut to 100 characters, else the URL hostname, else "General".
    """
    title = (title or "").strip()
    if title:
        return title[:GROUPING_FALLBACK_LABEL_LENGTH]
    return hostname_of(page_url) or GROUPING_DEFAULT_LABEL


def parse_suggestion(response_text: str) -> GroupingSuggestion | None:
    """Strict JSON + schema check; None when the answer is unusable."""
    json_text = (response_text or "").strip()
    if not json_text:
        counter("grouping.empty_response")
        return None

    try:
        return GroupingSuggestion.model_validate(json.loads(json_text))
    except (json.JSONDecodeError, ValidationError) as e:
        counter("grouping.parse_error")
        logger.warning("Grouping suggestion invalid: %s", e)
        return None


class GroupingService:
    """
    Decides which group a saved page belongs to.

    Args:
        llm_call: Replaces the Gemini call (tests inject fakes here)
        llm_enabled: Forces the "model configured" check; None reads env
    """

    def __init__(self, llm_call: LlmCall | None = None, llm_enabled: bool | None = None):
        self._llm_call = llm_call or _call_gemini
        self._llm_enabled = llm_enabled

    def model_available(self) -> bool:
        if self._llm_enabled is not None:
            return self._llm_enabled
        return is_llm_configured()

    def resolve_group(
        self,
        user_id: str,
        page_url: str,
        title: str | None,
        existing: ItemRecord | None = None,
    ) -> str | None:
        """Group id for an item being saved; an already grouped item keeps its group."""
        if existing is not None and existing.group_id:
            counter("grouping.reused_existing")
            return existing.group_id

        effective_title = title if title is not None else (existing.title if existing else None)
        try:
            return self.determine_group(user_id, page_url, effective_title)
        except Exception as e:
            counter("grouping.error")
            logger.error("Grouping failed for user %s: %s", user_id, e)
            return None

    def determine_group(self, user_id: str, page_url: str, title: str | None) -> str | None:
        if not self.model_available():
            counter("grouping.llm_disabled")
            if GroupRepository.count_for_user(user_id) == 0:
                return self._create_group(user_id, derive_fallback_label(title, page_url), None)
            return None

        try:
            groups = GroupRepository.list_with_items(
                user_id,
                limit=GROUPING_CANDIDATE_GROUPS,
                items_per_group=GROUPING_ITEMS_PER_GROUP,
            )
        except Exception as e:
            logger.error("Failed to load existing groups for user %s: %s", user_id, e)
            return None

        suggestion = self._request_suggestion(page_url, title, groups)
        if suggestion is None:
            if groups:
                return None
            return self._create_group(user_id, derive_fallback_label(title, page_url), None)

        if suggestion.action == "assign":
            if suggestion.target_group_id:
                for group in groups:
                    if group.id == suggestion.target_group_id:
                        counter("grouping.assigned_by_id")
                        return group.id
                counter("grouping.unknown_target_ignored")

            if suggestion.label:
                wanted = suggestion.label.lower()
                for group in groups:
                    if group.label.lower() == wanted:
                        counter("grouping.assigned_by_label")
                        return group.id

        if suggestion.action == "create" and suggestion.label:
            return self._create_group(user_id, suggestion.label, suggestion.summary)

        if not groups:
            return self._create_group(user_id, derive_fallback_label(title, page_url), None)

        return None

    def build_prompt(
        self, page_url: str, title: str | None, groups: list[ItemGroupRecord]
    ) -> str:
        """User message: the new page, the candidate groups and the answer format."""
        payload = {
            "item": {
                "title": sanitize_for_prompt(title, max_length=300) or None,
                "pageUrl": page_url,
            },
            "existingGroups": [
                {
                    "id": group.id,
                    "label": group.label,
                    "summary": group.summary,
                    "items": [
                        {
                            "id": item.id,
                            "title": sanitize_for_prompt(item.title, max_length=300) or None,
                            "page_url": item.page_url,
                        }
                        for item in group.items
                    ],
                }
                for group in groups
            ],
            "instructions": {
                "format": SUGGESTION_FORMAT,
                "goal": "Prefer reuse; create only when no close match.",
            },
        }
        return json.dumps(payload, ensure_ascii=False)

    def _request_suggestion(
        self, page_url: str, title: str | None, groups: list[ItemGroupRecord]
    ) -> GroupingSuggestion | None:
        prompt = self.build_prompt(page_url, title, groups)
        try:
            logger.info(
                "GROUPING: calling %s for %s with %d candidate groups",
                GEMINI_MODEL,
                redact(page_url),
                len(groups),
            )
            response_text = self._llm_call(prompt, GROUPING_SYSTEM_INSTRUCTION)
        except Exception as e:
            counter("grouping.llm_error")
            logger.error("Grouping model request failed: %s", e)
            log_event("grouping.error", error=str(e)[:200], model=GEMINI_MODEL)
            return None

        suggestion = parse_suggestion(response_text)
        if suggestion is not None:
            log_event("grouping.suggestion", action=suggestion.action, candidates=len(groups))
        return suggestion

    def _create_group(self, user_id: str, label: str, summary: str | None) -> str | None:
        try:
            group = GroupRepository.upsert(user_id, label, summary)
        except Exception as e:
            counter("grouping.create_failed")
            logger.error("Failed to create item group for user %s: %s", user_id, e)
            return None
        counter("grouping.created")
        return group.id


def _call_gemini(prompt: str, system_instruction: str) -> str:
    from rabbithole.llm.retry import call_llm

    return call_llm(
        prompt,
        counter_prefix="grouping",
        system_instruction=system_instruction,
        temperature=GROUPING_TEMPERATURE,
    )
