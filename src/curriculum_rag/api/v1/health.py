"""Health check endpoints."""

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from curriculum_rag.config import get_settings
from curriculum_rag.utils.logging import get_logger

logger = get_logger("health")

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check(request: Request):
    """
    Health check endpoint.

    Does not check external dependencies; healthy whenever the process is up.
    """
    container = getattr(request.app.state, "container", None)
    settings = container.settings if container is not None else get_settings()
    logger.debug("Health check requested")
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "environment": settings.environment.value,
    }


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check(request: Request):
    """
    Readiness check endpoint.

    Checks:
    - Qdrant (collection listing)
    - Embeddings (provider configured)
    - Cache (store ping; degraded cache does not block readiness)

    Returns 503 if Qdrant or the embedding configuration is unavailable.
    """
    container = getattr(request.app.state, "container", None)
    settings = container.settings if container is not None else get_settings()
    checks = {"qdrant": False, "embeddings": False, "cache": "disabled"}

    if container is not None:
        checks["qdrant"] = await container.qdrant_service.health_check()
        cache_health = await container.cache.health_check()
        checks["cache"] = cache_health["status"]

    checks["embeddings"] = settings.embedding.is_configured
    if not checks["embeddings"]:
        logger.warning(
            "Embeddings configuration check failed: missing required env vars",
            extra={"provider": settings.embedding.provider.value},
        )

    body = {
        "status": "ready",
        "app_name": settings.app_name,
        "environment": settings.environment.value,
        "checks": checks,
    }
    if not (checks["qdrant"] and checks["embeddings"]):
        logger.warning(f"Readiness check failed: {checks}")
        body["status"] = "not_ready"
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)

    logger.debug("Readiness check passed: all systems operational")
    return body
