"""HTTP boundary serving the aggregated JWK set on a fixed path."""

from __future__ import annotations

from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from jwks_aggregator.cache import JWKSetCacheManager
from jwks_aggregator.config import DEFAULT_PATH
from jwks_aggregator.log import NOOP_LOGGER

FAILED_ORIGINS_HEADER = "X-JWKS-Failed-Origins"


class JWKAggregatorMiddleware(BaseHTTPMiddleware):
    """Answer the aggregator path from cache and delegate every other path."""

    def __init__(
        self,
        app,
        cache_manager: JWKSetCacheManager,
        path: str = DEFAULT_PATH,
        logger: Any = None,
    ) -> None:
        """Initialize middleware with the cache manager it reads from."""
        super().__init__(app)
        self._cache_manager = cache_manager
        self._path = path
        self._logger = logger or NOOP_LOGGER

    async def dispatch(self, request: Request, call_next) -> Response:
        """Serve merged keys on the aggregator path, pass through otherwise."""
        if request.url.path != self._path:
            return await call_next(request)

        snapshot = await self._cache_manager.read_snapshot()
        response = JSONResponse(content=snapshot.as_jwks())
        if snapshot.failed_origins:
            response.headers[FAILED_ORIGINS_HEADER] = str(len(snapshot.failed_origins))
        self._logger.debug(
            "jwks_served",
            path=request.url.path,
            key_count=len(snapshot.keys),
            generation=snapshot.generation,
        )
        return response
