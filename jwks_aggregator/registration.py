"""Setup path wiring the aggregator around a host ASGI application."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import ValidationError
from starlette.types import ASGIApp

from jwks_aggregator.aggregator import KeySetAggregator
from jwks_aggregator.cache import JWKSetCacheManager
from jwks_aggregator.client import OriginClient
from jwks_aggregator.config import AggregatorConfig
from jwks_aggregator.exceptions import ConfigurationInvalidError, ConfigurationMissingError
from jwks_aggregator.log import NOOP_LOGGER
from jwks_aggregator.middleware import JWKAggregatorMiddleware
from jwks_aggregator.state import CacheState
from jwks_aggregator.types import FetchRecorder

PLUGIN_NAME = "jwk-aggregator"


@dataclass(frozen=True)
class AggregatorComponents:
    """Client, shared state, aggregator and cache manager built from one config."""

    config: AggregatorConfig
    client: OriginClient
    state: CacheState
    aggregator: KeySetAggregator
    cache_manager: JWKSetCacheManager

    async def start(self) -> None:
        """Start background refresh when the config enables it."""
        if self.config.cache:
            self.cache_manager.start_background_refresh()

    async def aclose(self) -> None:
        """Stop background refresh and release the HTTP client."""
        await self.cache_manager.stop_background_refresh()
        await self.client.aclose()


@dataclass(frozen=True)
class RegisteredHandler:
    """Wrapped application plus the components that back it."""

    app: ASGIApp
    components: AggregatorComponents


def parse_extra_config(extra: Mapping[str, Any]) -> AggregatorConfig:
    """Extract and validate the aggregator block from host ``extra`` configuration."""
    block = extra.get(PLUGIN_NAME)
    if isinstance(block, AggregatorConfig):
        return block
    if not isinstance(block, Mapping):
        raise ConfigurationMissingError("configuration not found")
    try:
        return AggregatorConfig.model_validate(dict(block))
    except ValidationError as exc:
        raise ConfigurationInvalidError(f"invalid {PLUGIN_NAME} configuration: {exc}") from exc


def build_components(
    extra: Mapping[str, Any],
    logger: Any = None,
    recorder: FetchRecorder | None = None,
    http_client: httpx.AsyncClient | None = None,
    state: CacheState | None = None,
) -> AggregatorComponents:
    """Build aggregator components from host ``extra`` configuration."""
    config = parse_extra_config(extra)
    logger = logger or NOOP_LOGGER

    client = OriginClient(timeout=config.fetch_timeout_seconds, http_client=http_client)
    state = state or CacheState()
    aggregator = KeySetAggregator(
        client=client,
        state=state,
        origins=config.origin_urls,
        logger=logger,
        recorder=recorder,
    )
    cache_manager = JWKSetCacheManager(
        aggregator=aggregator,
        state=state,
        freshness_window_seconds=config.freshness_window_seconds,
        refresh_interval_seconds=config.refresh_interval_seconds,
        single_flight=config.single_flight,
        logger=logger,
    )
    logger.debug("plugin_registered", plugin=PLUGIN_NAME, origin_count=len(config.origin_urls))
    return AggregatorComponents(
        config=config,
        client=client,
        state=state,
        aggregator=aggregator,
        cache_manager=cache_manager,
    )


def register_handler(
    app: ASGIApp,
    extra: Mapping[str, Any],
    logger: Any = None,
    recorder: FetchRecorder | None = None,
    http_client: httpx.AsyncClient | None = None,
    state: CacheState | None = None,
) -> RegisteredHandler:
    """Wrap ``app`` with the aggregator endpoint built from ``extra`` configuration.

    Raises ``ConfigurationError`` when the block is missing or invalid; the host
    keeps serving ``app`` unwrapped in that case. Background refresh needs a
    running event loop, so it starts from ``components.start()`` in the host's
    startup hook rather than here.
    """
    components = build_components(
        extra, logger=logger, recorder=recorder, http_client=http_client, state=state
    )
    wrapped = JWKAggregatorMiddleware(
        app,
        cache_manager=components.cache_manager,
        path=components.config.path,
        logger=logger,
    )
    return RegisteredHandler(app=wrapped, components=components)
