"""
Application-wide settings and environment configuration
"""

from __future__ import annotations

import os
from pathlib import Path

# Project paths
RABBITHOLE_ROOT = Path(__file__).parent.parent

# Environment
ENV = os.getenv("RABBITHOLE_ENV", "development")
DEBUG = ENV == "development"

# API Configuration
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))
LOG_LEVEL = os.getenv("RABBITHOLE_LOG_LEVEL", "INFO")

# Google Cloud / Gemini
GOOGLE_CLOUD_PROJECT = os.getenv("GOOGLE_CLOUD_PROJECT")
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash-001")
GEMINI_LOCATION = os.getenv("GEMINI_LOCATION", "us-central1")
GEMINI_MAX_TOKENS = int(os.getenv("GEMINI_MAX_TOKENS", "1024"))

# Grouping wants stable answers, recommendations a little variety
GROUPING_TEMPERATURE = float(os.getenv("RABBITHOLE_GROUPING_TEMPERATURE", "0.0"))
RECOMMENDATION_TEMPERATURE = float(os.getenv("RABBITHOLE_RECOMMENDATION_TEMPERATURE", "0.4"))

# Database
DB_PATH = Path(os.getenv("RABBITHOLE_DB_PATH", str(RABBITHOLE_ROOT / "data" / "rabbithole.db")))

# Extension API client
RABBITHOLE_API_URL = os.getenv("RABBITHOLE_API_URL", "http://localhost:8000")
# Dev-only identity used by the annotator when no token has been stored
FALLBACK_USER_ID = "00000000-0000-0000-0000-000000000000"
