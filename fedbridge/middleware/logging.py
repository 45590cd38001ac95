"""Structured request logging middleware with credential redaction."""

from __future__ import annotations

from time import perf_counter
from typing import Any

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

# Callback and login query parameters that carry credential material.
SENSITIVE_KEYS = {
    "assertion",
    "authorization",
    "client_secret",
    "code",
    "connector_data",
    "cookie",
    "state",
    "subject_token",
}
REDACTED = "***REDACTED***"

logger = structlog.get_logger(__name__)


def _is_sensitive_key(key: str) -> bool:
    """Return True when key likely carries credential material."""
    normalized = key.lower().replace("-", "_")
    return normalized in SENSITIVE_KEYS or "token" in normalized or "secret" in normalized


def redact_query(values: dict[str, Any]) -> dict[str, Any]:
    """Redact sensitive values from query parameters."""
    return {key: REDACTED if _is_sensitive_key(key) else value for key, value in values.items()}


class LoggingMiddleware(BaseHTTPMiddleware):
    """Emit one structured log per request with redacted metadata."""

    async def dispatch(self, request: Request, call_next) -> Response:
        """Log completion metadata for each request."""
        start = perf_counter()
        query_params = redact_query(dict(request.query_params.items()))

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request_completed",
                method=request.method,
                path=request.url.path,
                query_params=query_params,
                status_code=500,
                duration_ms=round((perf_counter() - start) * 1000, 2),
            )
            raise

        event_logger = logger.warning if response.status_code >= 400 else logger.info
        event_logger(
            "request_completed",
            method=request.method,
            path=request.url.path,
            query_params=query_params,
            status_code=response.status_code,
            duration_ms=round((perf_counter() - start) * 1000, 2),
        )
        return response
