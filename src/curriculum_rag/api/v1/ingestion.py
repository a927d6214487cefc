"""Ingestion endpoints."""

from fastapi import APIRouter, Depends

from curriculum_rag.api.dependencies import get_ingestion_pipeline
from curriculum_rag.models.index import CollectionStats
from curriculum_rag.models.ingestion import IngestionPipelineResult
from curriculum_rag.models.requests import IngestionRunRequest, ReindexRequest
from curriculum_rag.services.ingestion_pipeline import IngestionPipeline
from curriculum_rag.utils.errors import ValidationError, VectorStoreError
from curriculum_rag.utils.logging import get_logger

logger = get_logger("api.ingestion")

router = APIRouter(prefix="/ingestion", tags=["ingestion"])


@router.post("/run", response_model=IngestionPipelineResult)
async def run_ingestion(
    body: IngestionRunRequest,
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline),
):
    """Validate, chunk, embed and index a batch of documents."""
    logger.info(f"Ingestion requested: documents={len(body.documents)}")
    return await pipeline.run(body.documents, body.options)


@router.post("/reindex", response_model=IngestionPipelineResult)
async def reindex_document(
    body: ReindexRequest,
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline),
):
    """Replace the indexed points of one document; an invalid document is rejected up front."""
    problems = body.document.validation_errors()
    if problems:
        raise ValidationError("Document is not valid", errors=problems, details={"document_id": body.document.id})
    return await pipeline.reindex_document(body.document, body.options)


@router.get("/stats", response_model=CollectionStats)
async def ingestion_stats(pipeline: IngestionPipeline = Depends(get_ingestion_pipeline)):
    stats = await pipeline.get_ingestion_stats()
    if stats is None:
        raise VectorStoreError("Collection statistics unavailable")
    return stats
