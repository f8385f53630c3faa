"""Correlation ID middleware."""

from __future__ import annotations

from uuid import uuid4

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"
MAX_CORRELATION_ID_LENGTH = 128
_CONTEXT_KEY = "correlation_id"


def _incoming_correlation_id(request: Request) -> str | None:
    """Return caller-supplied correlation id, accepting the request-id alias."""
    for header in (CORRELATION_ID_HEADER, REQUEST_ID_HEADER):
        value = request.headers.get(header, "").strip()
        if value and len(value) <= MAX_CORRELATION_ID_LENGTH:
            return value
    return None


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Attach a request correlation ID and bind it to structlog context."""

    async def dispatch(self, request: Request, call_next) -> Response:
        """Bind correlation ID context for the current request lifecycle."""
        correlation_id = _incoming_correlation_id(request) or str(uuid4())
        request.state.correlation_id = correlation_id
        structlog.contextvars.bind_contextvars(**{_CONTEXT_KEY: correlation_id})

        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars(_CONTEXT_KEY)

        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response
