"""Centralized configuration for the Rabbithole backend.

Re-exports everything from rabbithole.infrastructure.settings, then adds typed
constants for database, LLM, API listing caps and the annotator.  Environment
variable overrides use safe defaults so the app starts without extra env
configuration.
"""

from __future__ import annotations

import os

from rabbithole.infrastructure.settings import *  # noqa: F401, F403  re-export

# --- App ---
APP_VERSION: str = "1.0.0"

# --- Database ---
DB_POOL_SIZE: int = int(os.getenv("RABBITHOLE_DB_POOL_SIZE", "5"))
DB_POOL_TIMEOUT: float = float(os.getenv("RABBITHOLE_DB_POOL_TIMEOUT", "5.0"))
DB_CONNECT_TIMEOUT: float = float(os.getenv("RABBITHOLE_DB_CONNECT_TIMEOUT", "30.0"))
DB_TEMP_CONN_MAX: int = int(os.getenv("RABBITHOLE_DB_TEMP_CONN_MAX", "10"))
DB_RETRY_MAX: int = int(os.getenv("RABBITHOLE_DB_RETRY_MAX", "5"))
DB_RETRY_BASE_DELAY: float = float(os.getenv("RABBITHOLE_DB_RETRY_BASE_DELAY", "0.1"))
DB_RETRY_MAX_DELAY: float = float(os.getenv("RABBITHOLE_DB_RETRY_MAX_DELAY", "2.0"))
DB_RETRY_JITTER: float = float(os.getenv("RABBITHOLE_DB_RETRY_JITTER", "0.1"))

# --- LLM ---
LLM_TIMEOUT_SECONDS: int = int(os.getenv("RABBITHOLE_LLM_TIMEOUT", "30"))
LLM_MAX_RETRIES: int = int(os.getenv("RABBITHOLE_LLM_MAX_RETRIES", "3"))

# --- API ---
API_GROUPS_LIMIT: int = 50
ITEM_TITLE_MAX_LENGTH: int = 300

# --- Grouping ---
GROUPING_CANDIDATE_GROUPS: int = 12
GROUPING_ITEMS_PER_GROUP: int = 5
GROUPING_LABEL_MAX_LENGTH: int = 120
GROUPING_SUMMARY_MAX_LENGTH: int = 500
GROUPING_FALLBACK_LABEL_LENGTH: int = 100
GROUPING_DEFAULT_LABEL: str = "General"

# --- Recommendations ---
RECOMMENDATION_GROUPS_LIMIT: int = 20
RECOMMENDATION_ITEMS_LIMIT: int = 40
RECOMMENDATION_NOTES_LIMIT: int = 120
RECOMMENDATION_SNIPPETS_PER_ITEM: int = 3
RECOMMENDATION_SNIPPET_LENGTH: int = 120
RECOMMENDATION_TITLE_LENGTH: int = 120
RECOMMENDATION_MAX_RESULTS: int = 8

# --- Annotator ---
NOTE_GAP_PX: float = 12.0
NOTE_VIEWPORT_PADDING_PX: float = 12.0
ANNOTATOR_PERSIST_MAX_ATTEMPTS: int = int(os.getenv("RABBITHOLE_PERSIST_MAX_ATTEMPTS", "1"))
ANNOTATOR_HTTP_TIMEOUT: float = float(os.getenv("RABBITHOLE_ANNOTATOR_HTTP_TIMEOUT", "10.0"))
