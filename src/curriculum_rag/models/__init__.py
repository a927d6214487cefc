"""Data models for the curriculum RAG service."""

from curriculum_rag.models.cache import CacheEntry, CacheMetrics
from curriculum_rag.models.chunk import (
    ChunkingOptions,
    ChunkingResult,
    ChunkingStats,
    ChunkMetadata,
    ContentChunk,
)
from curriculum_rag.models.document import RawDocument
from curriculum_rag.models.embedding import EmbeddingResult
from curriculum_rag.models.index import (
    BatchFailure,
    CollectionStats,
    IndexableDocument,
    UpsertReport,
)
from curriculum_rag.models.ingestion import (
    IngestionError,
    IngestionOptions,
    IngestionPipelineResult,
    IngestionStats,
    SubjectStats,
)
from curriculum_rag.models.search import (
    RetrievalContext,
    RetrievalSource,
    SearchHit,
    SearchResult,
)

__all__ = [
    "BatchFailure",
    "CacheEntry",
    "CacheMetrics",
    "ChunkMetadata",
    "ChunkingOptions",
    "ChunkingResult",
    "ChunkingStats",
    "CollectionStats",
    "ContentChunk",
    "EmbeddingResult",
    "IndexableDocument",
    "IngestionError",
    "IngestionOptions",
    "IngestionPipelineResult",
    "IngestionStats",
    "RawDocument",
    "RetrievalContext",
    "RetrievalSource",
    "SearchHit",
    "SearchResult",
    "SubjectStats",
    "UpsertReport",
]
