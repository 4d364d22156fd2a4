"""
Helpers for keeping user content out of logs and model prompts.

- redact(): stable hash for correlating URLs and ids in log lines
- truncate(): cut text to a length, ending with an ellipsis
- sanitize_for_prompt(): strip prompt-injection patterns from page titles
  and note text before they reach the model
"""

from __future__ import annotations

import re
from hashlib import sha256

INJECTION_PATTERNS = [
    r"ignore\s+(previous|above|all)\s+instructions?",
    r"disregard\s+(previous|above|all)\s+instructions?",
    r"forget\s+(previous|above|all)\s+instructions?",
    r"new\s+instructions?:",
    r"system\s*:",
    r"assistant\s*:",
    r"\[INST\]",
    r"\[/INST\]",
    r"<\|im_start\|>",
    r"<\|im_end\|>",
]
INJECTION_REGEX = re.compile("|".join(INJECTION_PATTERNS), re.IGNORECASE)

ELLIPSIS = "…"


def redact(value: str | None) -> str:
    """Return a stable hash representation of a sensitive string."""
    if not value:
        return "hash:missing"
    digest = sha256(value.encode("utf-8")).hexdigest()[:12]
    return f"hash:{digest}"


def truncate(text: str | None, max_length: int) -> str:
    """
    Trim text to max_length characters.

    Longer text keeps max_length - 1 characters and gains a trailing ellipsis,
    so the result is never longer than max_length.

    Example:
        truncate("abcdef", 4) -> "abc…"
    """
    if not text:
        return ""
    text = text.strip()
    if len(text) <= max_length:
        return text
    return text[: max_length - 1].rstrip() + ELLIPSIS


def sanitize_for_prompt(text: str | None, max_length: int = 500) -> str:
    """
    Sanitize user-provided text before it goes into a model prompt.

    Truncates, replaces known injection phrases with [REDACTED] and drops
    characters that could break the JSON payload framing.
    """
    if not text:
        return ""

    text = text[:max_length]
    text = INJECTION_REGEX.sub("[REDACTED]", text)
    text = re.sub(r"[<>{}|\\]", "", text)

    return text.strip()
