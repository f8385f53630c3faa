"""Structured request logging middleware."""

from __future__ import annotations

from time import perf_counter

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

logger = structlog.get_logger(__name__)


def _extract_client_ip(request: Request) -> str:
    """Extract client address using X-Forwarded-For when present."""
    forwarded_for = request.headers.get("x-forwarded-for", "").strip()
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    client = request.client
    return client.host if client else "unknown"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Emit one structured log per request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        """Log completion metadata for each request."""
        start = perf_counter()
        fields = {
            "method": request.method,
            "path": request.url.path,
            "client_ip": _extract_client_ip(request),
            "user_agent": request.headers.get("user-agent", ""),
        }

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request_completed",
                status_code=500,
                duration_ms=round((perf_counter() - start) * 1000, 2),
                **fields,
            )
            raise

        event_logger = logger.warning if response.status_code >= 400 else logger.info
        event_logger(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round((perf_counter() - start) * 1000, 2),
            **fields,
        )
        return response
