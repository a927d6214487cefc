"""Ingestion pipeline models."""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, computed_field

from curriculum_rag.models.chunk import ChunkingOptions
from curriculum_rag.models.index import CollectionStats


def _now() -> datetime:
    return datetime.now(timezone.utc)


class IngestionOptions(BaseModel):
    batch_size: int = Field(default=100, gt=0, description="Embedding and upsert batch size")
    use_contextualized_content: bool = Field(
        default=True, description="Embed the enriched text instead of the raw chunk"
    )
    dry_run: bool = Field(default=False, description="Chunk and embed without touching the store")
    chunking: Optional[ChunkingOptions] = Field(default=None, description="Override chunking options")


class SubjectStats(BaseModel):
    documents: int = 0
    chunks: int = 0
    tokens: int = 0


class IngestionStats(BaseModel):
    """Counters for one ingestion run."""

    documents_processed: int = 0
    chunks_created: int = 0
    tokens_total: int = 0
    error_count: int = 0
    embeddings_failed: int = 0
    start_time: datetime = Field(default_factory=_now)
    end_time: Optional[datetime] = None
    by_subject: Dict[str, SubjectStats] = Field(default_factory=dict)

    @computed_field
    @property
    def duration_ms(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds() * 1000


class IngestionError(BaseModel):
    document_id: str
    error: str
    chunk_id: Optional[str] = None


class IngestionPipelineResult(BaseModel):
    success: bool
    stats: IngestionStats
    errors: List[IngestionError] = Field(default_factory=list)
    collection_stats: Optional[CollectionStats] = None
    dry_run: bool = False
