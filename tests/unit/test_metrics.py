"""Unit tests for the in-process metrics registry."""

from __future__ import annotations

from app.middleware.metrics import MetricsRegistry


def test_registry_renders_request_and_origin_fetch_series() -> None:
    """Request counters and per-origin fetch counters render as Prometheus text."""
    registry = MetricsRegistry()
    registry.record(method="GET", path="/jwk-aggregator", status="200", duration_seconds=0.25)
    registry.record(method="GET", path="/jwk-aggregator", status="200", duration_seconds=0.75)
    registry.record_origin_fetch("https://a.local/jwks", "success")
    registry.record_origin_fetch("https://b.local/jwks", "unreachable")
    registry.record_origin_fetch("https://b.local/jwks", "unreachable")

    text = registry.render_prometheus_text()

    assert (
        'jwks_aggregator_http_requests_total{method="GET",path="/jwk-aggregator",status="200"} 2'
        in text
    )
    assert (
        "jwks_aggregator_http_request_duration_seconds_sum"
        '{method="GET",path="/jwk-aggregator",status="200"} 1.0' in text
    )
    assert (
        'jwks_aggregator_origin_fetch_total{origin="https://b.local/jwks",outcome="unreachable"} 2'
        in text
    )
    assert registry.origin_fetch_count("https://a.local/jwks", "success") == 1
    assert registry.origin_fetch_count("https://a.local/jwks", "parse_failed") == 0


def test_registry_escapes_label_values() -> None:
    """Quotes and newlines in label values are escaped."""
    registry = MetricsRegistry()
    registry.record_origin_fetch('https://a.local/"odd"\npath', "success")

    text = registry.render_prometheus_text()

    assert 'origin="https://a.local/\\"odd\\"\\npath"' in text
