"""Core API endpoints for WorldWiki."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends

from worldwiki.api import dependencies
from worldwiki.api.dependencies import get_container
from worldwiki.core.logging import get_logger
from worldwiki.infrastructure.stores.redis_store import ping
from worldwiki.services.container import ServiceContainer

logger = get_logger(__name__)

router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint with application status."""
    return {
        "message": "WorldWiki generation API",
        "version": "0.1.0",
        "status": "running",
        "features": [
            "two_phase_generation",
            "push_stream",
            "free_tier_quota",
            "sliding_window_rate_limit",
        ],
    }


@router.get("/health", operation_id="health")
async def health_check(container: ServiceContainer = Depends(get_container)):
    """Health check endpoint."""
    stores = container.stores
    store = {"shared": stores.shared}
    if stores.redis is not None:
        store["reachable"] = await ping(stores.redis)
    if stores.breaker is not None:
        store["circuit"] = stores.breaker.get_state()["state"]

    maintenance = dependencies.maintenance
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "store": store,
        "fallbacks": container.monitor.snapshot(),
        "maintenance": maintenance.get_job_status() if maintenance else None,
    }
