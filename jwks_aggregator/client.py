"""Async HTTP client fetching JWK sets from individual origins."""

from __future__ import annotations

import json
from typing import Any

import httpx

from jwks_aggregator.exceptions import (
    OriginParseError,
    OriginReadError,
    OriginUnreachableError,
)
from jwks_aggregator.types import JWKSet

DEFAULT_TIMEOUT = httpx.Timeout(connect=2.0, read=5.0, write=5.0, pool=5.0)


class OriginClient:
    """Fetch one origin's JWK set per call, mapping failures onto ``FetchError`` kinds."""

    def __init__(
        self,
        timeout: httpx.Timeout | float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Create client with bounded timeouts and optional injected transport."""
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout or DEFAULT_TIMEOUT)

    async def fetch_jwks(self, origin: str) -> JWKSet:
        """Fetch and parse the JWK set served at ``origin``."""
        body = await self._read_body(origin)
        return self._parse(origin, body)

    async def aclose(self) -> None:
        """Close underlying HTTP client if owned by this instance."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> OriginClient:
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        """Exit async context manager and close managed resources."""
        del exc_type, exc, tb
        await self.aclose()

    async def _read_body(self, origin: str) -> bytes:
        """Issue GET and read the complete body, normalizing transport failures."""
        try:
            async with self._client.stream("GET", origin) as response:
                if not response.is_success:
                    raise OriginUnreachableError(
                        origin,
                        f"Origin responded with status {response.status_code}.",
                        response.status_code,
                    )
                try:
                    return await response.aread()
                except httpx.HTTPError as exc:
                    raise OriginReadError(origin, "Failed to read response body.") from exc
        except httpx.InvalidURL as exc:
            raise OriginUnreachableError(origin, "Origin URL is invalid.") from exc
        except httpx.RequestError as exc:
            raise OriginUnreachableError(origin, "Origin unreachable.") from exc

    @staticmethod
    def _parse(origin: str, body: bytes) -> JWKSet:
        """Return body as a JWK set document, keeping each key untouched."""
        try:
            payload = json.loads(body)
        except ValueError as exc:
            raise OriginParseError(origin, "Origin returned invalid JSON.") from exc
        if not isinstance(payload, dict):
            raise OriginParseError(origin, "Origin returned invalid JSON object.")
        keys = payload.get("keys")
        if not isinstance(keys, list):
            raise OriginParseError(origin, "Invalid JWKS response payload.")
        return {"keys": keys}
