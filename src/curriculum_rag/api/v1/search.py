"""Search endpoints."""

from fastapi import APIRouter, Depends

from curriculum_rag.api.dependencies import get_retrieval_service
from curriculum_rag.models.requests import SearchRequest
from curriculum_rag.models.search import RetrievalContext, SearchResult
from curriculum_rag.services.retrieval_service import RetrievalService

router = APIRouter(prefix="/search", tags=["search"])


@router.post("", response_model=SearchResult)
async def search_passages(
    body: SearchRequest,
    retrieval: RetrievalService = Depends(get_retrieval_service),
):
    """Ranked passages for a question, filtered by level and subject."""
    return await retrieval.search_passages(body.query, body.niveau, body.matiere, body.limit, body.min_score)


@router.post("/context", response_model=RetrievalContext)
async def search_context(
    body: SearchRequest,
    retrieval: RetrievalService = Depends(get_retrieval_service),
):
    """Formatted context block ready to be placed in a prompt."""
    return await retrieval.get_context(
        body.query,
        body.niveau,
        body.matiere,
        limit=body.limit,
        min_similarity=body.min_score,
        fallback_matiere=body.fallback_matiere,
    )
