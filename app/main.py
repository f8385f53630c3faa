"""FastAPI application factory."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI

from app.config import Settings, configure_structlog, get_settings
from app.error_handlers import register_exception_handlers
from app.middleware.correlation_id import CorrelationIdMiddleware
from app.middleware.logging import LoggingMiddleware
from app.middleware.metrics import (
    DEFAULT_METRICS_REGISTRY,
    MetricsMiddleware,
    MetricsRegistry,
    build_metrics_endpoint,
)
from app.routers import health
from jwks_aggregator.exceptions import ConfigurationError
from jwks_aggregator.middleware import JWKAggregatorMiddleware
from jwks_aggregator.registration import AggregatorComponents, build_components

logger = structlog.get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
    metrics_registry: MetricsRegistry = DEFAULT_METRICS_REGISTRY,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    configure_structlog(settings)

    components: AggregatorComponents | None = None
    try:
        components = build_components(
            settings.plugin_extra(),
            logger=structlog.get_logger("jwks_aggregator"),
            recorder=metrics_registry,
            http_client=http_client,
        )
    except ConfigurationError as exc:
        logger.warning("jwk_aggregator_disabled", error=str(exc))

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if components is not None:
            await components.start()
        try:
            yield
        finally:
            if components is not None:
                await components.aclose()

    app = FastAPI(title=settings.app.service, lifespan=lifespan)
    register_exception_handlers(app, environment=settings.app.environment)

    if components is not None:
        app.state.jwks_cache_manager = components.cache_manager
        app.add_middleware(
            JWKAggregatorMiddleware,
            cache_manager=components.cache_manager,
            path=components.config.path,
            logger=structlog.get_logger("jwks_aggregator"),
        )
    app.add_middleware(MetricsMiddleware, registry=metrics_registry)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    app.add_api_route(
        "/metrics",
        build_metrics_endpoint(metrics_registry),
        methods=["GET"],
        include_in_schema=False,
    )
    app.include_router(health.router)
    return app


app = create_app()
