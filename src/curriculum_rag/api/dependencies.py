"""FastAPI dependencies for the curriculum RAG service."""

from typing import Optional

from fastapi import HTTPException, Request, status

from curriculum_rag.container import Container
from curriculum_rag.services.cache_service import CacheService
from curriculum_rag.services.ingestion_pipeline import IngestionPipeline
from curriculum_rag.services.retrieval_service import RetrievalService
from curriculum_rag.utils.logging import get_logger

logger = get_logger("dependencies")


def get_container(request: Request) -> Container:
    """
    Get the service container from app state.

    Raises:
        HTTPException: If the application has not finished starting up.
    """
    container: Optional[Container] = getattr(request.app.state, "container", None)
    if container is None:
        logger.error("Service container not available in app state")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Services are not initialized",
        )
    return container


def get_ingestion_pipeline(request: Request) -> IngestionPipeline:
    return get_container(request).ingestion_pipeline


def get_retrieval_service(request: Request) -> RetrievalService:
    return get_container(request).retrieval_service


def get_cache_service(request: Request) -> CacheService:
    return get_container(request).cache
