"""Cache administration endpoints."""

from fastapi import APIRouter, Depends

from curriculum_rag.api.dependencies import get_cache_service
from curriculum_rag.models.requests import InvalidateRequest
from curriculum_rag.services.cache_service import CacheService

router = APIRouter(prefix="/cache", tags=["cache"])


@router.get("/metrics")
async def cache_metrics(cache: CacheService = Depends(get_cache_service)):
    return {
        "backend": cache.backend,
        "health": await cache.health_check(),
        "metrics": cache.get_metrics(),
    }


@router.post("/invalidate")
async def invalidate_cache(body: InvalidateRequest, cache: CacheService = Depends(get_cache_service)):
    deleted = await cache.invalidate_by_pattern(body.pattern)
    return {"pattern": body.pattern, "deleted": deleted}
