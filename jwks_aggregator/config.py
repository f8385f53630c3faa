"""Aggregator configuration model."""

from __future__ import annotations

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, field_validator

DEFAULT_PATH = "/jwk-aggregator"
DEFAULT_FRESHNESS_WINDOW_SECONDS = 15 * 60.0
DEFAULT_REFRESH_INTERVAL_SECONDS = 15 * 60.0


class AggregatorConfig(BaseModel):
    """Settings block recognized under the ``jwk-aggregator`` plugin name."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    origins: list[AnyHttpUrl] = Field(description="Origin URLs serving JWK sets, in merge order.")
    cache: bool = Field(default=False, description="Enable the background refresh task.")
    freshness_window_seconds: float = Field(default=DEFAULT_FRESHNESS_WINDOW_SECONDS, gt=0)
    refresh_interval_seconds: float = Field(default=DEFAULT_REFRESH_INTERVAL_SECONDS, gt=0)
    fetch_timeout_seconds: float | None = Field(default=None, gt=0)
    path: str = DEFAULT_PATH
    single_flight: bool = False

    @property
    def origin_urls(self) -> tuple[str, ...]:
        """Return configured origins as plain URL strings, in merge order."""
        return tuple(str(origin) for origin in self.origins)

    @field_validator("path")
    @classmethod
    def validate_path(cls, value: str) -> str:
        """Ensure the served path is absolute."""
        if not value.startswith("/"):
            raise ValueError("path must start with '/'.")
        return value
