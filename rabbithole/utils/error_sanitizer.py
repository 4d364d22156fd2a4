"""
Error message sanitization.

Keeps store and SDK internals out of client-facing error bodies; the full
detail is logged server-side instead.
"""

from __future__ import annotations

import re

from rabbithole.observability.logging import get_logger

logger = get_logger(__name__)

SENSITIVE_PATTERNS = [
    # File paths
    r"/[^\s]+\.py",
    r"[A-Za-z]:\\[^\s]+",
    # Stack traces
    r"Traceback \(most recent call last\)",
    r"File \".*\"",
    r"line \d+",
    # Store errors
    r"sqlite3?\.",
    r"UNIQUE constraint",
    r"FOREIGN KEY constraint",
    r"no such table",
    r"no such column",
    # Keys and tokens
    r"[A-Za-z0-9_-]{32,}",
    r"Bearer [A-Za-z0-9._-]+",
    # Internal module names
    r"rabbithole\.[a-z_.]+",
]

GENERIC_MESSAGES = {
    400: "Invalid request.",
    401: "Missing user identity",
    404: "Not found",
    500: "Internal server error",
    503: "Service temporarily unavailable.",
}


def sanitize_error_message(message: str, status_code: int = 500) -> str:
    """
    Return message if it is safe to show a client, else a generic one.

    Short single-line messages pass through for 4xx; anything matching a
    sensitive pattern, and every 5xx message, is replaced.
    """
    fallback = GENERIC_MESSAGES.get(status_code, "An error occurred.")
    if not message:
        return fallback

    for pattern in SENSITIVE_PATTERNS:
        if re.search(pattern, message, re.IGNORECASE):
            logger.warning("Sanitized sensitive error pattern: %s", pattern)
            return fallback

    if status_code < 500 and len(message) < 120 and "\n" not in message:
        return message

    return fallback
