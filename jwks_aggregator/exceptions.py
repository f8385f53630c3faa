"""Aggregator exception hierarchy."""

from __future__ import annotations


class AggregatorError(Exception):
    """Base class for all aggregator-specific exceptions."""


class FetchError(AggregatorError):
    """Raised when one origin cannot produce a usable JWK set."""

    kind = "fetch_failed"

    def __init__(self, origin: str, detail: str) -> None:
        """Initialize with the failing origin and a human-readable detail."""
        super().__init__(f"{detail} ({origin})")
        self.origin = origin
        self.detail = detail


class OriginUnreachableError(FetchError):
    """Raised on transport failure or a non-success response status."""

    kind = "unreachable"

    def __init__(self, origin: str, detail: str, status_code: int | None = None) -> None:
        """Initialize with optional HTTP status code context."""
        super().__init__(origin, detail)
        self.status_code = status_code


class OriginReadError(FetchError):
    """Raised when the response body could not be read completely."""

    kind = "read_failed"


class OriginParseError(FetchError):
    """Raised when the body is not a ``{"keys": [...]}`` document."""

    kind = "parse_failed"


class ConfigurationError(AggregatorError):
    """Raised when the aggregator cannot be set up from host configuration."""


class ConfigurationMissingError(ConfigurationError):
    """Raised when the host did not supply the aggregator configuration block."""


class ConfigurationInvalidError(ConfigurationError):
    """Raised when the aggregator configuration block fails validation."""
