"""
Reading recommendations from a user's saved pages, groups and notes.

Builds a compact context (recent groups, recent items, a few note snippets
per item), asks Gemini for reading ideas and validates the answer strictly.

Every failure ends in an empty list plus a human-readable message; nothing
here raises to the route.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from rabbithole.config import (
    GEMINI_MODEL,
    RECOMMENDATION_GROUPS_LIMIT,
    RECOMMENDATION_ITEMS_LIMIT,
    RECOMMENDATION_MAX_RESULTS,
    RECOMMENDATION_NOTES_LIMIT,
    RECOMMENDATION_SNIPPET_LENGTH,
    RECOMMENDATION_SNIPPETS_PER_ITEM,
    RECOMMENDATION_TEMPERATURE,
    RECOMMENDATION_TITLE_LENGTH,
)
from rabbithole.library.repository import GroupRepository, ItemRepository, NoteRepository
from rabbithole.llm.gemini import is_llm_configured
from rabbithole.observability.logging import get_logger
from rabbithole.observability.telemetry import counter, log_event
from rabbithole.utils.redaction import sanitize_for_prompt, truncate

logger = get_logger(__name__)

LlmCall = Callable[[str, str], str]

RECOMMENDATION_SYSTEM_INSTRUCTION = (
    "You are a reading guide. Suggest concise reading ideas that build on the user's "
    "saved pages, groups, and notes. Respond only with JSON."
)

MESSAGE_DISABLED = "Recommendations disabled: no model configured."
MESSAGE_CONTEXT_FAILED = "Could not load user context."
MESSAGE_NO_ITEMS = "No saved items yet."
MESSAGE_UNAVAILABLE = "Recommendation model unavailable."
MESSAGE_NO_CONTENT = "Recommendation model returned no content."
MESSAGE_INVALID = "Recommendation model returned invalid data."
MESSAGE_FAILED = "Recommendation request failed."


class Recommendation(BaseModel):
    title: str = Field(max_length=120)
    summary: str = Field(max_length=300)
    suggested_query: str = Field(max_length=160)


class RecommendationSchema(BaseModel):
    """Schema for the model's answer."""

    recommendations: list[Recommendation] = Field(max_length=RECOMMENDATION_MAX_RESULTS)


@dataclass
class RecommendationResult:
    recommendations: list[Recommendation] = field(default_factory=list)
    message: str | None = None

    def to_response(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "recommendations": [r.model_dump() for r in self.recommendations]
        }
        if self.message is not None:
            body["message"] = self.message
        return body


@dataclass
class UserContext:
    groups: list[dict[str, Any]]
    items: list[dict[str, Any]]


class RecommendationGenerator:
    """
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

    def generate(self, user_id: str) -> RecommendationResult:
        if not self.model_available():
            counter("recommendations.llm_disabled")
            return RecommendationResult(message=MESSAGE_DISABLED)

        context = self.load_user_context(user_id)
        if context is None:
            return RecommendationResult(message=MESSAGE_CONTEXT_FAILED)

        if not context.items:
            return RecommendationResult(message=MESSAGE_NO_ITEMS)

        prompt = self.build_prompt(context)

        try:
            response_text = self._llm_call(prompt, RECOMMENDATION_SYSTEM_INSTRUCTION)
        except (TimeoutError, ConnectionError, OSError) as e:
            counter("recommendations.unavailable")
            logger.error("Recommendation model unavailable: %s", e)
            return RecommendationResult(message=MESSAGE_UNAVAILABLE)
        except Exception as e:
            counter("recommendations.error")
            logger.error("Recommendation request failed: %s", e)
            log_event("recommendations.error", error=str(e)[:200], model=GEMINI_MODEL)
            return RecommendationResult(message=MESSAGE_FAILED)

        if not response_text or not response_text.strip():
            counter("recommendations.empty_response")
            logger.error("Recommendation model returned no content")
            return RecommendationResult(message=MESSAGE_NO_CONTENT)

        try:
            validated = RecommendationSchema.model_validate(json.loads(response_text))
        except (json.JSONDecodeError, ValidationError) as e:
            counter("recommendations.parse_error")
            logger.error("Recommendation model returned invalid data: %s", e)
            return RecommendationResult(message=MESSAGE_INVALID)

        counter("recommendations.success")
        log_event(
            "recommendations.result",
            count=len(validated.recommendations),
            items=len(context.items),
            model=GEMINI_MODEL,
        )
        return RecommendationResult(recommendations=validated.recommendations)

    def load_user_context(self, user_id: str) -> UserContext | None:
        """
        Recent groups, recent items and note snippets, or None if the store fails.

        A failed note lookup is logged and the items go out without snippets.
        """
        try:
            groups = GroupRepository.list_with_items(user_id, limit=RECOMMENDATION_GROUPS_LIMIT)
            items = ItemRepository.list_recent(user_id, limit=RECOMMENDATION_ITEMS_LIMIT)
        except Exception as e:
            logger.error("Failed to load recommendation context for user %s: %s", user_id, e)
            return None

        snippets: dict[str, list[str]] = {}
        try:
            notes = NoteRepository.list_recent_for_items(
                (item.id for item in items), limit=RECOMMENDATION_NOTES_LIMIT
            )
        except Exception as e:
            logger.error("Failed to load notes for user %s: %s", user_id, e)
            notes = []

        for note in notes:
            if not note.content:
                continue
            bucket = snippets.setdefault(note.item_id, [])
            if len(bucket) < RECOMMENDATION_SNIPPETS_PER_ITEM:
                bucket.append(
                    truncate(sanitize_for_prompt(note.content), RECOMMENDATION_SNIPPET_LENGTH)
                )

        labels = {group.id: group.label for group in groups}
        return UserContext(
            groups=[{"id": g.id, "label": g.label, "summary": g.summary} for g in groups],
            items=[
                {
                    "id": item.id,
                    "title": truncate(
                        sanitize_for_prompt(item.title), RECOMMENDATION_TITLE_LENGTH
                    ),
                    "page_url": item.page_url,
                    "group_label": labels.get(item.group_id) if item.group_id else None,
                    "note_snippets": snippets.get(item.id, []),
                }
                for item in items
            ],
        )

    def build_prompt(self, context: UserContext) -> str:
        payload = {
            "groups": context.groups,
            "items": context.items,
            "instructions": {
                "goal": (
                    "Recommend fresh reading topics or searches based on the user's saved "
                    "pages, groups, and notes."
                ),
                "format": "{ recommendations: [{ title, summary, suggested_query }] }",
                "guardrails": (
                    "Do not invent full URLs. Use short titles and suggest a search query "
                    "the user can try."
                ),
            },
        }
        return json.dumps(payload, ensure_ascii=False)


def _call_gemini(prompt: str, system_instruction: str) -> str:
    from rabbithole.llm.retry import call_llm

    return call_llm(
        prompt,
        counter_prefix="recommendations",
        system_instruction=system_instruction,
        temperature=RECOMMENDATION_TEMPERATURE,
    )
