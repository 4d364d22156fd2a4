"""Permissive CORS for the browser extension.

Every response carries the same three headers, and any OPTIONS request is
answered here with an empty 200 before routing.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from rabbithole.observability.logging import get_logger

logger = get_logger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-User-Id",
    "Access-Control-Allow-Methods": "GET,POST,PATCH,DELETE,OPTIONS",
}


class CorsHeadersMiddleware(BaseHTTPMiddleware):
    """Attach CORS headers to all responses, including errors."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.method == "OPTIONS":
            response: Response = Response(status_code=200)
        else:
            try:
                response = await call_next(request)
            except Exception as e:
                # Unhandled errors would otherwise reach the client without CORS headers
                logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, e)
                response = JSONResponse(status_code=500, content={"error": "Internal server error"})

        for name, value in CORS_HEADERS.items():
            response.headers[name] = value
        return response
