"""Health check endpoints.

/health is the liveness check the extension pings; /health/db reports the
connection pool and schema for operators.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException

from rabbithole.config import APP_VERSION
from rabbithole.infrastructure.database import get_pool_stats, validate_schema
from rabbithole.llm.gemini import is_llm_configured
from rabbithole.observability.logging import get_logger

router = APIRouter(tags=["health"])
logger = get_logger(__name__)


@router.get("/health")
def health_check() -> dict[str, Any]:
    return {"ok": True}


@router.get("/health/db")
def database_health() -> dict[str, Any]:
    """Pool usage, schema check and whether the model is configured (no API call)."""
    try:
        schema_ok = validate_schema()
        pool = get_pool_stats()
    except Exception as e:
        logger.error("Database health check failed: %s", e)
        raise HTTPException(status_code=503, detail="Database unavailable") from None

    return {
        "ok": schema_ok,
        "version": APP_VERSION,
        "pool": pool,
        "llm": {"configured": is_llm_configured()},
    }
