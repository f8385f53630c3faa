"""Middleware package exports."""

from app.middleware.correlation_id import CorrelationIdMiddleware
from app.middleware.logging import LoggingMiddleware
from app.middleware.metrics import MetricsMiddleware, MetricsRegistry, build_metrics_endpoint

__all__ = [
    "CorrelationIdMiddleware",
    "LoggingMiddleware",
    "MetricsMiddleware",
    "MetricsRegistry",
    "build_metrics_endpoint",
]
