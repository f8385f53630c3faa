"""Health check router endpoints."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request

from jwks_aggregator.cache import JWKSetCacheManager

router = APIRouter(prefix="/health", tags=["health"])


def get_cache_manager(request: Request) -> JWKSetCacheManager | None:
    """Return the cache manager registered on the application, if any."""
    return getattr(request.app.state, "jwks_cache_manager", None)


@router.get("/live")
async def live() -> dict[str, str]:
    """Liveness check endpoint."""
    return {"status": "live"}


@router.get("/ready")
async def ready(
    cache_manager: Annotated[JWKSetCacheManager | None, Depends(get_cache_manager)],
) -> dict[str, Any]:
    """Readiness check reporting cache age without triggering a fetch.

    The first request on the aggregator path fills the cache, so an empty
    cache is still reported as ready.
    """
    if cache_manager is None:
        return {"status": "disabled"}

    snapshot = await cache_manager.snapshot()
    if snapshot is None:
        return {
            "status": "ready",
            "aggregated": False,
            "fresh": False,
            "key_count": 0,
            "failed_origins": 0,
            "age_seconds": None,
            "background_refresh": cache_manager.background_refresh_running,
        }
    return {
        "status": "ready",
        "aggregated": True,
        "fresh": await cache_manager.is_fresh(),
        "key_count": len(snapshot.keys),
        "failed_origins": len(snapshot.failed_origins),
        "age_seconds": round(cache_manager.age_seconds(snapshot), 3),
        "background_refresh": cache_manager.background_refresh_running,
    }
