"""API v1 router aggregation."""

from fastapi import APIRouter

from curriculum_rag.api.v1 import cache, health, ingestion, search

# Create v1 API router with version prefix
router = APIRouter(
    prefix="/api/v1",
    tags=["v1"],
    responses={
        404: {"description": "Not found"},
        422: {"description": "Validation error"},
        500: {"description": "Internal server error"},
    },
)

router.include_router(health.router)
router.include_router(ingestion.router)
router.include_router(search.router)
router.include_router(cache.router)


@router.get(
    "/",
    summary="API Information",
    description="Get API version and status information",
    tags=["v1"],
)
async def api_info():
    """Get API v1 information."""
    return {
        "version": "v1",
        "status": "active",
        "service": "curriculum-rag",
        "endpoints": {
            "health": "/api/v1/health",
            "ready": "/api/v1/ready",
            "ingestion": {
                "run": "/api/v1/ingestion/run",
                "reindex": "/api/v1/ingestion/reindex",
                "stats": "/api/v1/ingestion/stats",
            },
            "search": {
                "passages": "/api/v1/search",
                "context": "/api/v1/search/context",
            },
            "cache": {
                "metrics": "/api/v1/cache/metrics",
                "invalidate": "/api/v1/cache/invalidate",
            },
        },
    }
