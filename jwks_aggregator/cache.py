"""JWK set cache manager with lazy revalidation and periodic background refresh."""

from __future__ import annotations

import asyncio
from typing import Any

from jwks_aggregator.aggregator import KeySetAggregator
from jwks_aggregator.config import (
    DEFAULT_FRESHNESS_WINDOW_SECONDS,
    DEFAULT_REFRESH_INTERVAL_SECONDS,
)
from jwks_aggregator.log import NOOP_LOGGER
from jwks_aggregator.state import CacheState
from jwks_aggregator.types import CacheSnapshot, JWKSet


class JWKSetCacheManager:
    """Serve the aggregated JWK set, refreshing it when stale or on a timer."""

    def __init__(
        self,
        aggregator: KeySetAggregator,
        state: CacheState,
        freshness_window_seconds: float = DEFAULT_FRESHNESS_WINDOW_SECONDS,
        refresh_interval_seconds: float = DEFAULT_REFRESH_INTERVAL_SECONDS,
        single_flight: bool = False,
        logger: Any = None,
    ) -> None:
        """Create cache manager over a shared state and aggregator.

        With ``single_flight`` enabled, concurrent reads that find the cache
        stale wait on one shared aggregation instead of each starting their own.
        """
        self._aggregator = aggregator
        self._state = state
        self._freshness_window_seconds = freshness_window_seconds
        self._refresh_interval_seconds = refresh_interval_seconds
        self._single_flight = single_flight
        self._logger = logger or NOOP_LOGGER
        self._inflight: asyncio.Task[CacheSnapshot] | None = None
        self._refresh_task: asyncio.Task[None] | None = None

    @property
    def freshness_window_seconds(self) -> float:
        return self._freshness_window_seconds

    @property
    def refresh_interval_seconds(self) -> float:
        return self._refresh_interval_seconds

    @property
    def background_refresh_running(self) -> bool:
        """Return True while the background refresh task is alive."""
        return self._refresh_task is not None and not self._refresh_task.done()

    async def is_fresh(self) -> bool:
        """Return True when the cached set is younger than the freshness window."""
        return await self._state.is_fresh(self._freshness_window_seconds)

    async def snapshot(self) -> CacheSnapshot | None:
        """Return the last committed snapshot without triggering a fetch."""
        return await self._state.snapshot()

    def age_seconds(self, snapshot: CacheSnapshot) -> float:
        """Return seconds elapsed since ``snapshot`` was committed."""
        return self._state.now() - snapshot.fetched_at

    async def read(self) -> JWKSet:
        """Return cached JWK set, aggregating synchronously when the cache is stale."""
        snapshot = await self.read_snapshot()
        return snapshot.as_jwks()

    async def read_snapshot(self) -> CacheSnapshot:
        """Return a fresh snapshot, aggregating first when the cache is stale."""
        snapshot = await self._state.fresh_snapshot(self._freshness_window_seconds)
        if snapshot is not None:
            return snapshot

        self._logger.debug("jwks_cache_stale")
        inflight = self._inflight
        if inflight is not None and not inflight.done():
            return await asyncio.shield(inflight)
        if not self._single_flight:
            return await self._aggregator.aggregate_snapshot()
        return await self._shared_refresh()

    def start_background_refresh(self, interval_seconds: float | None = None) -> None:
        """Launch the periodic refresh task if it is not already running.

        Ticks are scheduled at a fixed rate, so fetch time does not push later
        ticks back. A stale read that lands while a tick is still fetching waits
        on that tick instead of starting its own aggregation.
        """
        if self.background_refresh_running:
            return
        interval = self._refresh_interval_seconds if interval_seconds is None else interval_seconds
        if interval <= 0:
            raise ValueError("interval_seconds must be positive.")
        if interval >= self._freshness_window_seconds:
            self._logger.warning(
                "refresh_interval_not_below_freshness_window",
                refresh_interval_seconds=interval,
                freshness_window_seconds=self._freshness_window_seconds,
            )
        self._refresh_task = asyncio.create_task(
            self._refresh_loop(interval), name="jwks-background-refresh"
        )
        self._logger.info("background_refresh_started", interval_seconds=interval)

    async def stop_background_refresh(self) -> None:
        """Cancel the periodic refresh task and wait for it to exit."""
        task, self._refresh_task = self._refresh_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._logger.info("background_refresh_stopped")

    async def _refresh_loop(self, interval_seconds: float) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time()
        while True:
            deadline += interval_seconds
            await asyncio.sleep(max(0.0, deadline - loop.time()))
            task = self._start_aggregation(name="jwks-background-aggregation")
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                # Let the tick in flight finish before the owner closes the client.
                await asyncio.wait([task])
                raise
            except Exception as exc:
                self._logger.exception("background_refresh_failed", error=str(exc))
            if loop.time() - deadline >= interval_seconds:
                deadline = loop.time()

    async def _shared_refresh(self) -> CacheSnapshot:
        """Join the in-flight aggregation, starting one when none is running."""
        task = self._inflight
        if task is None or task.done():
            task = self._start_aggregation(name="jwks-shared-aggregation")
        return await asyncio.shield(task)

    def _start_aggregation(self, name: str) -> asyncio.Task[CacheSnapshot]:
        task = asyncio.create_task(self._aggregator.aggregate_snapshot(), name=name)
        self._inflight = task
        task.add_done_callback(self._clear_inflight)
        return task

    def _clear_inflight(self, task: asyncio.Task[CacheSnapshot]) -> None:
        if self._inflight is task:
            self._inflight = None
