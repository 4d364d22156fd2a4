"""FastAPI server for Rabbithole"""

from __future__ import annotations

import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from rabbithole.api.middleware.cors import CorsHeadersMiddleware
from rabbithole.api.middleware.user_auth import missing_identity_error, resolve_user_id
from rabbithole.api.routes.annotations import router as annotations_router
from rabbithole.api.routes.groups import router as groups_router
from rabbithole.api.routes.health import router as health_router
from rabbithole.api.routes.items import router as items_router
from rabbithole.api.routes.recommendations import router as recommendations_router
from rabbithole.config import APP_VERSION
from rabbithole.infrastructure.database import init_database
from rabbithole.observability.logging import get_logger
from rabbithole.observability.telemetry import counter, log_event
from rabbithole.utils.error_sanitizer import sanitize_error_message
from rabbithole.utils.redaction import redact

# Load environment variables from .env file
load_dotenv()

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    try:
        logger.info("Initializing database schema...")
        init_database()
        logger.info("Database initialization complete")
    except sqlite3.OperationalError as e:
        logger.critical("Database schema error: %s", e)
        raise RuntimeError(f"Database initialization failed: {e}") from e
    except Exception as e:
        logger.critical("Unexpected database initialization error: %s", e)
        raise RuntimeError(f"Database initialization failed: {e}") from e

    log_event("api.startup", service="rabbithole", version=APP_VERSION)
    yield


app = FastAPI(title="Rabbithole API", version=APP_VERSION, lifespan=lifespan)


def flatten_validation_errors(errors: list[dict[str, Any]]) -> dict[str, Any]:
    """
    Group pydantic errors by field.

    Errors on a named body/query/path field go under fieldErrors[field];
    errors about the body as a whole go to formErrors.
    """
    form_errors: list[str] = []
    field_errors: dict[str, list[str]] = {}

    for err in errors:
        loc = err.get("loc", ())
        message = err.get("msg", "Invalid value")
        if len(loc) >= 2 and loc[0] in ("body", "query", "path", "header"):
            field_errors.setdefault(str(loc[1]), []).append(message)
        else:
            form_errors.append(message)

    return {"formErrors": form_errors, "fieldErrors": field_errors}


def _is_unreadable_body(errors: list[dict[str, Any]]) -> bool:
    for err in errors:
        if err.get("type") == "json_invalid":
            return True
        if err.get("type") == "missing" and tuple(err.get("loc", ())) == ("body",):
            return True
    return False


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    400 for both unreadable JSON and schema mismatches, never 422.

    Every route that validates input also requires identity, and identity is
    checked first: an anonymous request gets 401 whatever its body holds.
    """
    if resolve_user_id(request) is None:
        return await http_exception_handler(request, missing_identity_error())

    errors = list(exc.errors())
    logger.warning("Validation error on %s: %s", redact(str(request.url)), errors)
    counter("api.validation_errors")

    if _is_unreadable_body(errors):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid JSON body"},
        )

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": flatten_validation_errors(errors)},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render every HTTP error as {"error": message}."""
    message = str(exc.detail)
    if exc.status_code < 500:
        message = sanitize_error_message(message, exc.status_code)

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message},
        headers=getattr(exc, "headers", None),
    )


app.add_middleware(CorsHeadersMiddleware)

app.include_router(health_router)
app.include_router(items_router)
app.include_router(annotations_router)
app.include_router(groups_router)
app.include_router(recommendations_router)


@app.get("/")
def root() -> dict[str, Any]:
    return {
        "service": "Rabbithole API",
        "version": APP_VERSION,
        "status": "running",
        "endpoints": {
            "health": "/health",
            "items": "/items",
            "item_by_url": "/items/by-url?url=",
            "groups": "/groups",
            "recommendations": "/recommendations",
        },
    }
