"""Aggregator data contract types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, TypedDict

JWK = Any
"""Opaque key record, passed through without inspection."""


class JWKSet(TypedDict):
    """JWK set document as served and as fetched from origins."""

    keys: list[JWK]


@dataclass(frozen=True)
class CacheSnapshot:
    """Keys and fetch timestamp committed together by one aggregation run."""

    keys: tuple[JWK, ...]
    fetched_at: float
    failed_origins: tuple[str, ...] = ()
    generation: int = 0

    def as_jwks(self) -> JWKSet:
        """Return a fresh ``{"keys": [...]}`` payload for this snapshot."""
        return {"keys": list(self.keys)}


class FetchRecorder(Protocol):
    """Sink for per-origin fetch outcomes."""

    def record_origin_fetch(self, origin: str, outcome: str) -> None: ...
