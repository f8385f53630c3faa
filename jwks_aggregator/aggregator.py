"""Fan-out fetch over configured origins and merge into one JWK set."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from jwks_aggregator.client import OriginClient
from jwks_aggregator.exceptions import FetchError
from jwks_aggregator.log import NOOP_LOGGER
from jwks_aggregator.state import CacheState
from jwks_aggregator.types import JWK, CacheSnapshot, FetchRecorder, JWKSet


class KeySetAggregator:
    """Merge per-origin JWK sets in origin order and commit the result to cache state."""

    def __init__(
        self,
        client: OriginClient,
        state: CacheState,
        origins: Sequence[str] = (),
        logger: Any = None,
        recorder: FetchRecorder | None = None,
    ) -> None:
        self._client = client
        self._state = state
        self._origins = tuple(origins)
        self._logger = logger or NOOP_LOGGER
        self._recorder = recorder

    @property
    def origins(self) -> tuple[str, ...]:
        """Configured origin list, in merge order."""
        return self._origins

    async def aggregate(self, origins: Sequence[str] | None = None) -> JWKSet:
        """Fetch every origin, skip failures, and return the merged key set."""
        snapshot = await self.aggregate_snapshot(origins)
        return snapshot.as_jwks()

    async def aggregate_snapshot(self, origins: Sequence[str] | None = None) -> CacheSnapshot:
        """Run one aggregation and return the snapshot it committed."""
        targets = self._origins if origins is None else tuple(origins)
        merged: list[JWK] = []
        failed: list[str] = []

        for origin in targets:
            try:
                key_set = await self._client.fetch_jwks(origin)
            except FetchError as exc:
                failed.append(origin)
                self._record(origin, exc.kind)
                self._logger.error(
                    "origin_fetch_failed",
                    origin=origin,
                    error_kind=exc.kind,
                    error=exc.detail,
                )
                continue
            self._record(origin, "success")
            merged.extend(key_set["keys"])

        snapshot = await self._state.commit(merged, failed_origins=failed)
        self._logger.info(
            "aggregation_completed",
            origin_count=len(targets),
            failed_count=len(failed),
            key_count=len(snapshot.keys),
            generation=snapshot.generation,
        )
        return snapshot

    def _record(self, origin: str, outcome: str) -> None:
        if self._recorder is not None:
            self._recorder.record_origin_fetch(origin, outcome)
