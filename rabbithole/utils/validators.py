"""
Input validation utilities for page URLs and ids.
"""

from __future__ import annotations

import uuid
from urllib.parse import urlsplit

MAX_URL_LENGTH = 2048
ALLOWED_SCHEMES = {"http", "https"}


class ValidationError(ValueError):
    """Raised when input validation fails."""


def validate_page_url(url: str | None) -> str:
    """
    Validate an absolute http(s) page URL.

    Returns:
        The URL with surrounding whitespace stripped

    Raises:
        ValidationError: If url is empty, too long, relative or not http(s)
    """
    if url is None or not url.strip():
        raise ValidationError("Required")

    url = url.strip()
    if len(url) > MAX_URL_LENGTH:
        raise ValidationError(f"URL exceeds maximum length of {MAX_URL_LENGTH}")

    parts = urlsplit(url)
    if parts.scheme.lower() not in ALLOWED_SCHEMES or not parts.netloc:
        raise ValidationError("Invalid url")

    return url


def hostname_of(url: str | None) -> str | None:
    """Hostname of url, or None when it cannot be parsed."""
    if not url:
        return None
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None
    return host or None


def is_uuid(value: str | None) -> bool:
    if not value:
        return False
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True
