"""Unit tests for fan-out aggregation and merge behavior."""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from jwks_aggregator.aggregator import KeySetAggregator
from jwks_aggregator.client import OriginClient
from jwks_aggregator.exceptions import (
    FetchError,
    OriginParseError,
    OriginReadError,
    OriginUnreachableError,
)
from jwks_aggregator.state import CacheState

ORIGIN_A = "https://a.local/jwks"
ORIGIN_B = "https://b.local/jwks"
ORIGIN_C = "https://c.local/jwks"


class _OriginClientStub:
    """Origin client stub returning configured keys or raising configured errors."""

    def __init__(self, responses: dict[str, list[Any] | FetchError]) -> None:
        self.responses = responses
        self.calls: list[str] = []

    async def fetch_jwks(self, origin: str) -> dict[str, list[Any]]:
        """Return configured key list for origin or raise its error."""
        self.calls.append(origin)
        response = self.responses[origin]
        if isinstance(response, FetchError):
            raise response
        return {"keys": list(response)}


class _FakeClock:
    """Controllable monotonic clock."""

    def __init__(self) -> None:
        self.current = 100.0

    def now(self) -> float:
        """Return current synthetic monotonic time."""
        return self.current


class _CaptureLogger:
    """Capture structlog-like logger calls for assertions."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    def _capture(self, level: str):
        def log(event: str, **kwargs: Any) -> None:
            self.calls.append((level, event, kwargs))

        return log

    def __getattr__(self, level: str):
        return self._capture(level)


class _RecorderStub:
    """Collect per-origin fetch outcomes."""

    def __init__(self) -> None:
        self.outcomes: list[tuple[str, str]] = []

    def record_origin_fetch(self, origin: str, outcome: str) -> None:
        self.outcomes.append((origin, outcome))


@pytest.mark.asyncio
async def test_aggregate_skips_failed_origin_and_preserves_order() -> None:
    """A failing origin in the middle leaves no gap and no reordering."""
    client = _OriginClientStub(
        {
            ORIGIN_A: [{"kid": "k1"}],
            ORIGIN_B: OriginUnreachableError(ORIGIN_B, "Origin unreachable."),
            ORIGIN_C: [{"kid": "k3"}],
        }
    )
    aggregator = KeySetAggregator(
        client=client, state=CacheState(), origins=[ORIGIN_A, ORIGIN_B, ORIGIN_C]
    )

    jwks = await aggregator.aggregate()

    assert jwks == {"keys": [{"kid": "k1"}, {"kid": "k3"}]}
    assert client.calls == [ORIGIN_A, ORIGIN_B, ORIGIN_C]


@pytest.mark.asyncio
async def test_aggregate_concatenates_without_deduplication() -> None:
    """Intra-origin order is kept and identical keys from two origins both survive."""
    shared = {"kid": "shared", "kty": "RSA"}
    client = _OriginClientStub(
        {
            ORIGIN_A: [{"kid": "a1"}, shared, {"kid": "a2"}],
            ORIGIN_B: [shared, {"kid": "b1"}],
        }
    )
    aggregator = KeySetAggregator(client=client, state=CacheState(), origins=[ORIGIN_A, ORIGIN_B])

    jwks = await aggregator.aggregate()

    assert jwks["keys"] == [{"kid": "a1"}, shared, {"kid": "a2"}, shared, {"kid": "b1"}]


@pytest.mark.asyncio
async def test_aggregate_returns_empty_set_when_all_origins_are_down() -> None:
    """All-origins-down is an empty result, not an error."""
    client = _OriginClientStub(
        {
            ORIGIN_A: OriginUnreachableError(ORIGIN_A, "Origin unreachable."),
            ORIGIN_B: OriginUnreachableError(ORIGIN_B, "Origin unreachable.", 503),
        }
    )
    state = CacheState()
    aggregator = KeySetAggregator(client=client, state=state, origins=[ORIGIN_A, ORIGIN_B])

    jwks = await aggregator.aggregate()
    snapshot = await state.snapshot()

    assert jwks == {"keys": []}
    assert snapshot is not None
    assert snapshot.keys == ()
    assert snapshot.failed_origins == (ORIGIN_A, ORIGIN_B)


@pytest.mark.asyncio
async def test_aggregate_commits_keys_and_timestamp_together() -> None:
    """Each run commits its keys with the clock reading at commit time."""
    clock = _FakeClock()
    state = CacheState(now=clock.now)
    client = _OriginClientStub({ORIGIN_A: [{"kid": "k1"}]})
    aggregator = KeySetAggregator(client=client, state=state, origins=[ORIGIN_A])

    first = await aggregator.aggregate_snapshot()
    clock.current += 42.0
    second = await aggregator.aggregate_snapshot()

    assert first.fetched_at == 100.0
    assert second.fetched_at == 142.0
    assert (first.generation, second.generation) == (1, 2)
    assert await state.snapshot() is second


@pytest.mark.asyncio
async def test_repeated_aggregation_is_order_stable() -> None:
    """Two runs over unchanged origins differ only in the recorded timestamp."""
    clock = _FakeClock()
    client = _OriginClientStub(
        {ORIGIN_A: [{"kid": "k1"}, {"kid": "k2"}], ORIGIN_C: [{"kid": "k3"}]}
    )
    aggregator = KeySetAggregator(
        client=client, state=CacheState(now=clock.now), origins=[ORIGIN_A, ORIGIN_C]
    )

    first = await aggregator.aggregate_snapshot()
    clock.current += 1.0
    second = await aggregator.aggregate_snapshot()

    assert first.keys == second.keys
    assert first.fetched_at != second.fetched_at


@pytest.mark.asyncio
async def test_aggregate_uses_explicit_origins_over_configured_list() -> None:
    """Passing origins overrides the configured list for that run only."""
    client = _OriginClientStub({ORIGIN_A: [{"kid": "k1"}], ORIGIN_C: [{"kid": "k3"}]})
    aggregator = KeySetAggregator(client=client, state=CacheState(), origins=[ORIGIN_A])

    jwks = await aggregator.aggregate([ORIGIN_C])

    assert jwks["keys"] == [{"kid": "k3"}]
    assert aggregator.origins == (ORIGIN_A,)


@pytest.mark.asyncio
async def test_aggregate_logs_error_kind_and_origin_for_each_failure() -> None:
    """Every failing origin is logged with its distinct error kind."""
    logger = _CaptureLogger()
    client = _OriginClientStub(
        {
            ORIGIN_A: OriginUnreachableError(ORIGIN_A, "Origin unreachable."),
            ORIGIN_B: OriginReadError(ORIGIN_B, "Failed to read response body."),
            ORIGIN_C: OriginParseError(ORIGIN_C, "Invalid JWKS response payload."),
        }
    )
    aggregator = KeySetAggregator(
        client=client,
        state=CacheState(),
        origins=[ORIGIN_A, ORIGIN_B, ORIGIN_C],
        logger=logger,
    )

    await aggregator.aggregate()

    failures = [
        (level, kwargs["origin"], kwargs["error_kind"])
        for level, event, kwargs in logger.calls
        if event == "origin_fetch_failed"
    ]
    assert failures == [
        ("error", ORIGIN_A, "unreachable"),
        ("error", ORIGIN_B, "read_failed"),
        ("error", ORIGIN_C, "parse_failed"),
    ]
    completed = [kwargs for _, event, kwargs in logger.calls if event == "aggregation_completed"]
    assert completed == [
        {"origin_count": 3, "failed_count": 3, "key_count": 0, "generation": 1}
    ]


@pytest.mark.asyncio
async def test_aggregate_reports_outcomes_to_recorder() -> None:
    """Per-origin outcomes are forwarded to the injected recorder."""
    recorder = _RecorderStub()
    client = _OriginClientStub(
        {
            ORIGIN_A: [{"kid": "k1"}],
            ORIGIN_B: OriginParseError(ORIGIN_B, "Origin returned invalid JSON."),
        }
    )
    aggregator = KeySetAggregator(
        client=client, state=CacheState(), origins=[ORIGIN_A, ORIGIN_B], recorder=recorder
    )

    await aggregator.aggregate()

    assert recorder.outcomes == [(ORIGIN_A, "success"), (ORIGIN_B, "parse_failed")]


@pytest.mark.asyncio
async def test_aggregate_with_default_logger_is_silent() -> None:
    """The default logger accepts every level without output or errors."""
    client = _OriginClientStub({ORIGIN_A: OriginUnreachableError(ORIGIN_A, "down")})
    aggregator = KeySetAggregator(client=client, state=CacheState(), origins=[ORIGIN_A])

    assert await aggregator.aggregate() == {"keys": []}


@pytest.mark.asyncio
async def test_malformed_origin_url_is_skipped_and_remaining_keys_committed() -> None:
    """An origin httpx cannot parse fails alone; its neighbours still land in the cache."""

    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=200, json={"keys": [{"kid": request.url.host}]})

    state = CacheState()
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    async with OriginClient(http_client=http_client) as client:
        aggregator = KeySetAggregator(
            client=client, state=state, origins=[ORIGIN_A, "http://[::1", ORIGIN_C]
        )
        jwks = await aggregator.aggregate()
    await http_client.aclose()

    snapshot = await state.snapshot()
    assert jwks == {"keys": [{"kid": "a.local"}, {"kid": "c.local"}]}
    assert snapshot is not None
    assert snapshot.failed_origins == ("http://[::1",)
