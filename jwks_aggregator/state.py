"""Shared cache state guarded as one unit."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence

from jwks_aggregator.types import JWK, CacheSnapshot


class CacheState:
    """Hold the last committed snapshot; keys and timestamp are swapped together."""

    def __init__(self, now: Callable[[], float] | None = None) -> None:
        self._now = now or time.monotonic
        self._snapshot: CacheSnapshot | None = None
        self._lock = asyncio.Lock()

    def now(self) -> float:
        """Return the current reading of the state clock."""
        return self._now()

    async def snapshot(self) -> CacheSnapshot | None:
        """Return the last committed snapshot, or None before the first commit."""
        async with self._lock:
            return self._snapshot

    async def is_fresh(self, window_seconds: float) -> bool:
        """Return True when the last commit is younger than ``window_seconds``."""
        async with self._lock:
            return self._fresh_locked(window_seconds)

    async def fresh_snapshot(self, window_seconds: float) -> CacheSnapshot | None:
        """Return the snapshot only when it is still within the freshness window."""
        async with self._lock:
            return self._snapshot if self._fresh_locked(window_seconds) else None

    async def commit(
        self,
        keys: Sequence[JWK],
        failed_origins: Sequence[str] = (),
    ) -> CacheSnapshot:
        """Replace the snapshot with ``keys`` stamped at the current time."""
        async with self._lock:
            generation = self._snapshot.generation + 1 if self._snapshot is not None else 1
            self._snapshot = CacheSnapshot(
                keys=tuple(keys),
                fetched_at=self._now(),
                failed_origins=tuple(failed_origins),
                generation=generation,
            )
            return self._snapshot

    def _fresh_locked(self, window_seconds: float) -> bool:
        if self._snapshot is None:
            return False
        return self._now() - self._snapshot.fetched_at < window_seconds
