"""Public aggregator exports."""

from jwks_aggregator.aggregator import KeySetAggregator
from jwks_aggregator.cache import JWKSetCacheManager
from jwks_aggregator.client import OriginClient
from jwks_aggregator.config import AggregatorConfig
from jwks_aggregator.middleware import JWKAggregatorMiddleware
from jwks_aggregator.registration import PLUGIN_NAME, build_components, register_handler
from jwks_aggregator.state import CacheState

__all__ = [
    "PLUGIN_NAME",
    "AggregatorConfig",
    "CacheState",
    "JWKAggregatorMiddleware",
    "JWKSetCacheManager",
    "KeySetAggregator",
    "OriginClient",
    "build_components",
    "register_handler",
]
